"""
Tests de pagos: asignación a facturas, anulación y diagnóstico.
"""
from decimal import Decimal
from uuid import UUID, uuid4

from app.modules.audit.models import AuditLog
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.payments.diagnostics import run_payment_allocation_diagnostic
from app.modules.payments.models import Payment, PaymentAllocation
from app.modules.payments.service import PaymentService
from conftest import make_user, auth_headers_for


def create_invoice(client, headers, customer, total="1000", status="sent"):
    response = client.post("/invoices", json={
        "customer_id": str(customer.id),
        "status": status,
        "items": [{"description": "Lab test panel", "quantity": "1", "unit_price": total}]
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestRecordPayment:

    def test_partial_then_paid(self, client, db_session, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)

        response = client.post("/payments", json={
            "invoice_id": invoice["id"], "amount": "400", "payment_method": "mpesa", "reference_number": "QK12AB"
        }, headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["payment_number"] == "PAY-000001"
        assert body["invoice_status"] == "partial"
        assert Decimal(body["invoice_balance"]) == Decimal("600")

        response = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "600"}, headers=auth_headers)
        assert response.json()["invoice_status"] == "paid"

        stored = db_session.get(Invoice, UUID(invoice["id"]))
        db_session.refresh(stored)
        assert stored.paid_amount == Decimal("1000")
        assert stored.balance_due == Decimal("0")
        assert db_session.query(PaymentAllocation).count() == 2

    def test_overpayment_is_accepted(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        response = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "1200"}, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["invoice_status"] == "paid"
        assert Decimal(response.json()["invoice_balance"]) == Decimal("-200")

    def test_unknown_invoice(self, client, auth_headers):
        response = client.post("/payments", json={"invoice_id": str(uuid4()), "amount": "10"}, headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Invoice not found"

    def test_amount_must_be_positive(self, client, db_session, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        response = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "0"}, headers=auth_headers)
        assert response.status_code == 400
        assert db_session.query(Payment).count() == 0

    def test_draft_invoice_rejects_payments(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer, status="draft")
        response = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "10"}, headers=auth_headers)
        assert response.status_code == 400

    def test_list_filtered_by_invoice(self, client, auth_headers, sample_customer):
        first = create_invoice(client, auth_headers, sample_customer)
        second = create_invoice(client, auth_headers, sample_customer)
        client.post("/payments", json={"invoice_id": first["id"], "amount": "100"}, headers=auth_headers)
        client.post("/payments", json={"invoice_id": second["id"], "amount": "100"}, headers=auth_headers)

        response = client.get(f"/payments?invoice_id={first['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestVoidPayment:

    def test_void_restores_balance(self, client, db_session, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        payment = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "1000"}, headers=auth_headers).json()

        response = client.post(f"/payments/{payment['payment_id']}/void", json={"reason": "Cheque bounced"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_voided"] is True

        stored = db_session.get(Invoice, UUID(invoice["id"]))
        db_session.refresh(stored)
        assert stored.status == InvoiceStatus.SENT
        assert stored.balance_due == Decimal("1000")
        assert db_session.query(AuditLog).filter_by(action="payment_voided").count() == 1

    def test_cannot_void_twice(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        payment = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "10"}, headers=auth_headers).json()
        client.post(f"/payments/{payment['payment_id']}/void", json={"reason": "Duplicate"}, headers=auth_headers)

        response = client.post(f"/payments/{payment['payment_id']}/void", json={"reason": "Duplicate"}, headers=auth_headers)
        assert response.status_code == 400


class TestPaymentDiagnostic:

    def test_diagnostic_passes_for_linked_user(self, client, auth_headers, sample_company):
        response = client.get("/payments/diagnostic", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["details"]["step"] == "complete"
        assert body["details"]["function_working"] is True
        assert body["details"]["company_id"] == str(sample_company.id)

    def test_diagnostic_leaves_no_rows(self, db_session, sample_user):
        result = run_payment_allocation_diagnostic(db_session, sample_user)
        assert result.success is True
        assert db_session.query(Payment).count() == 0

    def test_diagnostic_runs_under_the_linked_company(self, db_session, sample_user, sample_company, monkeypatch):
        real_record = PaymentService.record_payment_with_allocation
        companies = []

        def record(self, company_id, data, user_id=None, **kwargs):
            companies.append(company_id)
            return real_record(self, company_id, data, user_id, **kwargs)

        monkeypatch.setattr(PaymentService, "record_payment_with_allocation", record)

        assert run_payment_allocation_diagnostic(db_session, sample_user).success is True
        assert companies == [sample_company.id]

    def test_diagnostic_fails_without_company(self, client, db_session):
        user = make_user(db_session, None, "floating@medplus.app")
        headers = auth_headers_for(user, None)
        headers["X-Company-ID"] = str(uuid4())

        response = client.get("/payments/diagnostic", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["details"]["step"] == "profile"
        assert body["details"]["table_exists"] is True
