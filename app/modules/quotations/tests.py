"""
Tests de cotizaciones, proformas y conversión a factura.
"""
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

import pytest

from app.modules.conversions import service as conversions_service
from app.modules.invoices.models import Invoice
from app.modules.products.models import Product
from app.modules.quotations.models import Quotation
from app.modules.quotations.service import append_status_note


def document_payload(customer, product=None, quantity="5", unit_price="850", **extra):
    item = {"description": "Nitrile Gloves (box)", "quantity": quantity, "unit_price": unit_price, "tax_percentage": "16"}
    if product is not None:
        item["product_id"] = str(product.id)
    payload = {"customer_id": str(customer.id), "items": [item]}
    payload.update(extra)
    return payload


@pytest.fixture
def quotation(client, auth_headers, sample_customer, sample_product):
    response = client.post("/quotations", json=document_payload(
        sample_customer, sample_product, valid_until=(date.today() + timedelta(days=14)).isoformat()
    ), headers=auth_headers)
    assert response.status_code == 201
    return response.json()


class TestQuotations:

    def test_create_quotation(self, quotation):
        assert quotation["quotation_number"] == "QT-000001"
        assert quotation["status"] == "draft"
        assert Decimal(quotation["total_amount"]) == Decimal("4930")

    def test_valid_until_before_date_is_rejected(self, client, auth_headers, sample_customer):
        response = client.post("/quotations", json=document_payload(
            sample_customer, valid_until=(date.today() - timedelta(days=1)).isoformat()
        ), headers=auth_headers)
        assert response.status_code == 422

    def test_status_change_appends_note(self, client, auth_headers, quotation):
        response = client.post(f"/quotations/{quotation['id']}/status",
                               json={"status": "sent", "notes": "Emailed to procurement"}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "sent"
        assert "Status changed to sent: Emailed to procurement" in body["notes"]

    def test_cannot_set_converted_manually(self, client, auth_headers, quotation):
        response = client.post(f"/quotations/{quotation['id']}/status", json={"status": "converted"}, headers=auth_headers)
        assert response.status_code == 400

    def test_append_status_note(self):
        assert append_status_note("Existing", "accepted", None) == "Existing"
        note = append_status_note("Existing", "accepted", "Signed")
        assert note.startswith("Existing\n[")
        assert note.endswith("Status changed to accepted: Signed")


class TestQuotationConversion:

    def test_convert_to_invoice(self, client, db_session, auth_headers, quotation, sample_product):
        response = client.post(f"/quotations/{quotation['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["invoice_number"] == "INV-000001"
        assert invoice["status"] == "sent"
        assert invoice["quotation_id"] == quotation["id"]
        assert invoice["due_date"] == (date.today() + timedelta(days=30)).isoformat()
        assert Decimal(invoice["total_amount"]) == Decimal(quotation["total_amount"])
        assert len(invoice["items"]) == 1

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("95")
        stored = db_session.get(Quotation, UUID(quotation["id"]))
        assert stored.status.value == "converted"
        assert stored.converted_document_type == "invoice"
        assert str(stored.converted_document_id) == invoice["id"]

    def test_failed_conversion_leaves_nothing_behind(self, client, db_session, auth_headers, quotation, sample_product,
                                                     monkeypatch):
        real_book = conversions_service.book_invoice_stock
        failing = [True]

        def book_then_fail(db, invoice, user_id=None):
            real_book(db, invoice, user_id)
            if failing:
                raise RuntimeError("stock ledger unavailable")

        monkeypatch.setattr(conversions_service, "book_invoice_stock", book_then_fail)
        response = client.post(f"/quotations/{quotation['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 500

        db_session.expire_all()
        assert db_session.query(Invoice).count() == 0
        assert db_session.get(Quotation, UUID(quotation["id"])).status.value == "draft"
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("100")

        failing.clear()
        response = client.post(f"/quotations/{quotation['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["invoice_number"] == "INV-000001"

    def test_converted_quotation_cannot_convert_again(self, client, auth_headers, quotation):
        client.post(f"/quotations/{quotation['id']}/convert-to-invoice", headers=auth_headers)
        response = client.post(f"/quotations/{quotation['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 400

    def test_rejected_quotation_cannot_convert(self, client, auth_headers, quotation):
        client.post(f"/quotations/{quotation['id']}/status", json={"status": "rejected"}, headers=auth_headers)
        response = client.post(f"/quotations/{quotation['id']}/convert-to-proforma", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot convert a rejected quotation"

    def test_expired_quotation_can_convert(self, client, auth_headers, quotation):
        client.post(f"/quotations/{quotation['id']}/status", json={"status": "expired"}, headers=auth_headers)
        response = client.post(f"/quotations/{quotation['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 201

    def test_convert_to_proforma_then_invoice(self, client, db_session, auth_headers, quotation, sample_product):
        response = client.post(f"/quotations/{quotation['id']}/convert-to-proforma", headers=auth_headers)
        assert response.status_code == 201
        proforma = response.json()
        assert proforma["proforma_number"] == "PF-000001"
        assert proforma["status"] == "draft"
        assert proforma["quotation_id"] == quotation["id"]
        assert proforma["valid_until"] == quotation["valid_until"]

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("100")

        response = client.post(f"/proformas/{proforma['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["proforma_id"] == proforma["id"]
        assert invoice["quotation_id"] == quotation["id"]

        proforma = client.get(f"/proformas/{proforma['id']}", headers=auth_headers).json()
        assert proforma["status"] == "converted"
        assert proforma["converted_invoice_id"] == invoice["id"]

        db_session.expire_all()
        assert db_session.get(Product, sample_product.id).stock_quantity == Decimal("95")
        assert db_session.query(Invoice).count() == 1

        response = client.post(f"/proformas/{proforma['id']}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 400


class TestProformas:

    def test_create_and_list(self, client, auth_headers, sample_customer):
        response = client.post("/proformas", json=document_payload(sample_customer), headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["proforma_number"] == "PF-000001"

        response = client.get("/proformas", headers=auth_headers)
        assert response.json()["total"] == 1

    def test_unknown_proforma(self, client, auth_headers):
        response = client.post(f"/proformas/{UUID(int=1)}/convert-to-invoice", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Proforma invoice not found"
