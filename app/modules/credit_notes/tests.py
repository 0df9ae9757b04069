"""
Tests de notas crédito: creación, aplicación a facturas y anulación.
"""
from decimal import Decimal
from uuid import UUID

import pytest

from app.modules.audit.models import AuditLog
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.products.models import Product


@pytest.fixture
def open_invoice(client, auth_headers, sample_customer):
    response = client.post("/invoices", json={
        "customer_id": str(sample_customer.id),
        "status": "sent",
        "affects_inventory": False,
        "items": [{"description": "Ward supplies", "quantity": "1", "unit_price": "1000"}]
    }, headers=auth_headers)
    return response.json()


def credit_note_payload(customer, invoice=None, amount="300", product=None, **extra):
    item = {"description": "Returned items", "quantity": "1", "unit_price": amount}
    if product is not None:
        item["product_id"] = str(product.id)
    payload = {"customer_id": str(customer.id), "reason": "Damaged goods", "items": [item]}
    if invoice is not None:
        payload["invoice_id"] = invoice["id"]
    payload.update(extra)
    return payload


class TestCreditNoteCreation:

    def test_create_issued_credit_note(self, client, auth_headers, sample_customer, open_invoice):
        response = client.post("/credit-notes", json=credit_note_payload(sample_customer, open_invoice), headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["credit_note_number"] == "CN-000001"
        assert body["status"] == "issued"
        assert Decimal(body["balance"]) == Decimal("300")

    def test_returned_stock_is_booked(self, client, db_session, auth_headers, sample_customer, sample_product):
        payload = credit_note_payload(sample_customer, product=sample_product, affects_inventory=True)
        payload["items"][0]["quantity"] = "4"
        client.post("/credit-notes", json=payload, headers=auth_headers)

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("104")

    def test_invoice_of_other_customer_is_rejected(self, client, auth_headers, sample_supplier, open_invoice):
        response = client.post("/credit-notes", json=credit_note_payload(sample_supplier, open_invoice), headers=auth_headers)
        assert response.status_code == 400

    def test_draft_must_be_issued_before_applying(self, client, auth_headers, sample_customer, open_invoice):
        note = client.post(
            "/credit-notes", json=credit_note_payload(sample_customer, status="draft"), headers=auth_headers
        ).json()
        response = client.post(f"/credit-notes/{note['id']}/apply",
                               json={"invoice_id": open_invoice["id"], "amount": "100"}, headers=auth_headers)
        assert response.status_code == 400

        response = client.post(f"/credit-notes/{note['id']}/issue", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "issued"


class TestCreditNoteApplication:

    def test_apply_reduces_invoice_balance(self, client, db_session, auth_headers, sample_customer, open_invoice):
        note = client.post("/credit-notes", json=credit_note_payload(sample_customer), headers=auth_headers).json()

        response = client.post(f"/credit-notes/{note['id']}/apply",
                               json={"invoice_id": open_invoice["id"], "amount": "300"}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "applied"
        assert Decimal(body["balance"]) == Decimal("0")
        assert len(body["allocations"]) == 1

        invoice = db_session.get(Invoice, UUID(open_invoice["id"]))
        db_session.refresh(invoice)
        assert invoice.balance_due == Decimal("700")
        assert invoice.status == InvoiceStatus.PARTIAL

    def test_amount_cannot_exceed_credit_balance(self, client, auth_headers, sample_customer, open_invoice):
        note = client.post("/credit-notes", json=credit_note_payload(sample_customer), headers=auth_headers).json()
        response = client.post(f"/credit-notes/{note['id']}/apply",
                               json={"invoice_id": open_invoice["id"], "amount": "500"}, headers=auth_headers)
        assert response.status_code == 400
        assert "credit note balance" in response.json()["detail"]

    def test_amount_cannot_exceed_invoice_balance(self, client, auth_headers, sample_customer, open_invoice):
        note = client.post(
            "/credit-notes", json=credit_note_payload(sample_customer, amount="5000"), headers=auth_headers
        ).json()
        response = client.post(f"/credit-notes/{note['id']}/apply",
                               json={"invoice_id": open_invoice["id"], "amount": "1500"}, headers=auth_headers)
        assert response.status_code == 400
        assert "invoice balance" in response.json()["detail"]

    def test_cancel_restores_invoice_balance(self, client, db_session, auth_headers, sample_customer, open_invoice):
        note = client.post("/credit-notes", json=credit_note_payload(sample_customer), headers=auth_headers).json()
        client.post(f"/credit-notes/{note['id']}/apply",
                    json={"invoice_id": open_invoice["id"], "amount": "300"}, headers=auth_headers)

        response = client.post(f"/credit-notes/{note['id']}/cancel", json={"reason": "Issued in error"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        invoice = db_session.get(Invoice, UUID(open_invoice["id"]))
        db_session.refresh(invoice)
        assert invoice.balance_due == Decimal("1000")
        assert invoice.status == InvoiceStatus.SENT
        assert db_session.query(AuditLog).filter_by(action="credit_note_cancelled").count() == 1
