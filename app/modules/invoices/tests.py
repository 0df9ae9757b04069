"""
Tests de facturación: numeración, inventario, saldos y anulación.
"""
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from app.modules.invoices.balances import expected_status
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.invoices.service import InvoiceService
from app.modules.products.models import Product, StockMovement


def invoice_payload(customer, product=None, status="sent", quantity="10", unit_price="850", **extra):
    item = {"description": "Nitrile Gloves (box)", "quantity": quantity, "unit_price": unit_price}
    if product is not None:
        item["product_id"] = str(product.id)
    payload = {"customer_id": str(customer.id), "status": status, "items": [item]}
    payload.update(extra)
    return payload


class TestInvoiceCreation:

    def test_sent_invoice_books_stock(self, client, db_session, auth_headers, sample_customer, sample_product):
        response = client.post("/invoices", json=invoice_payload(sample_customer, sample_product), headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["invoice_number"] == "INV-000001"
        assert body["status"] == "sent"
        assert Decimal(body["total_amount"]) == Decimal("8500")
        assert Decimal(body["balance_due"]) == Decimal("8500")

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("90")
        assert db_session.query(StockMovement).filter_by(movement_type="OUT").count() == 1

    def test_numbers_are_sequential(self, client, auth_headers, sample_customer):
        numbers = [
            client.post("/invoices", json=invoice_payload(sample_customer), headers=auth_headers).json()["invoice_number"]
            for _ in range(2)
        ]
        assert numbers == ["INV-000001", "INV-000002"]

    def test_taxes_and_discounts(self, client, auth_headers, sample_customer):
        payload = invoice_payload(sample_customer, quantity="2", unit_price="100")
        payload["items"][0].update({"discount_percentage": "10", "tax_percentage": "16"})
        body = client.post("/invoices", json=payload, headers=auth_headers).json()
        assert Decimal(body["subtotal"]) == Decimal("180")
        assert Decimal(body["tax_amount"]) == Decimal("28.80")
        assert Decimal(body["total_amount"]) == Decimal("208.80")

    def test_draft_does_not_touch_stock_until_sent(self, client, db_session, auth_headers, sample_customer, sample_product):
        body = client.post(
            "/invoices", json=invoice_payload(sample_customer, sample_product, status="draft"), headers=auth_headers
        ).json()
        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("100")

        response = client.post(f"/invoices/{body['id']}/send", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("90")

    def test_send_with_notification_queues_email(self, client, auth_headers, sample_customer, sent_emails):
        body = client.post(
            "/invoices", json=invoice_payload(sample_customer, status="draft"), headers=auth_headers
        ).json()
        client.post(f"/invoices/{body['id']}/send?notify_customer=true", headers=auth_headers)

        name, _, kwargs = sent_emails[0]
        assert name == "document"
        assert kwargs["to_email"] == sample_customer.email
        assert kwargs["document_number"] == "INV-000001"

    def test_rejects_paid_status_on_create(self, client, auth_headers, sample_customer):
        response = client.post("/invoices", json=invoice_payload(sample_customer, status="paid"), headers=auth_headers)
        assert response.status_code == 422

    def test_requires_items(self, client, auth_headers, sample_customer):
        payload = invoice_payload(sample_customer)
        payload["items"] = []
        response = client.post("/invoices", json=payload, headers=auth_headers)
        assert response.status_code == 422

    def test_only_drafts_are_editable(self, client, auth_headers, sample_customer):
        body = client.post("/invoices", json=invoice_payload(sample_customer), headers=auth_headers).json()
        response = client.patch(f"/invoices/{body['id']}", json={"notes": "late edit"}, headers=auth_headers)
        assert response.status_code == 400


class TestInvoiceCancellation:

    def test_cancel_reverts_stock(self, client, db_session, auth_headers, sample_customer, sample_product):
        body = client.post("/invoices", json=invoice_payload(sample_customer, sample_product), headers=auth_headers).json()

        response = client.post(f"/invoices/{body['id']}/cancel", json={"reason": "Wrong customer"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("100")
        assert "[CANCELLED] Wrong customer" in db_session.get(Invoice, UUID(body["id"])).notes

    def test_cannot_cancel_twice(self, client, auth_headers, sample_customer):
        body = client.post("/invoices", json=invoice_payload(sample_customer), headers=auth_headers).json()
        client.post(f"/invoices/{body['id']}/cancel", json={}, headers=auth_headers)
        response = client.post(f"/invoices/{body['id']}/cancel", json={}, headers=auth_headers)
        assert response.status_code == 400

    def test_cannot_cancel_with_payments(self, client, auth_headers, sample_customer):
        body = client.post("/invoices", json=invoice_payload(sample_customer), headers=auth_headers).json()
        client.post("/payments", json={"invoice_id": body["id"], "amount": "100"}, headers=auth_headers)

        response = client.post(f"/invoices/{body['id']}/cancel", json={}, headers=auth_headers)
        assert response.status_code == 400


class TestOverdueAndStatus:

    def test_mark_overdue(self, db_session, client, auth_headers, sample_customer, sample_company):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        client.post("/invoices", json=invoice_payload(
            sample_customer, invoice_date=(date.today() - timedelta(days=31)).isoformat(), due_date=yesterday
        ), headers=auth_headers)
        client.post("/invoices", json=invoice_payload(sample_customer), headers=auth_headers)

        assert InvoiceService(db_session).mark_overdue_invoices(sample_company.id) == 1
        assert db_session.query(Invoice).filter_by(status=InvoiceStatus.OVERDUE).count() == 1

    def test_expected_status(self):
        assert expected_status(InvoiceStatus.SENT, Decimal("100"), Decimal("0"), Decimal("0")) == InvoiceStatus.PAID
        assert expected_status(InvoiceStatus.SENT, Decimal("40"), Decimal("0"), Decimal("60")) == InvoiceStatus.PARTIAL
        assert expected_status(InvoiceStatus.PAID, Decimal("0"), Decimal("0"), Decimal("100")) == InvoiceStatus.SENT
        assert expected_status(InvoiceStatus.OVERDUE, Decimal("0"), Decimal("0"), Decimal("100")) == InvoiceStatus.OVERDUE
        assert expected_status(InvoiceStatus.OVERDUE, Decimal("250"), Decimal("0"), Decimal("750")) == InvoiceStatus.OVERDUE
        assert expected_status(InvoiceStatus.OVERDUE, Decimal("1000"), Decimal("0"), Decimal("0")) == InvoiceStatus.PAID
        assert expected_status(InvoiceStatus.CANCELLED, Decimal("100"), Decimal("0"), Decimal("0")) == InvoiceStatus.CANCELLED
