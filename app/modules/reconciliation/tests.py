"""
Tests de conciliación de saldos de facturas.
"""
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.modules.auth.models import ProfileRole
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.invoices.service import InvoiceService
from app.modules.reconciliation import service
from app.modules.reconciliation import tasks as reconciliation_tasks
from conftest import make_user, auth_headers_for


def create_invoice(client, headers, customer, total="1000"):
    response = client.post("/invoices", json={
        "customer_id": str(customer.id),
        "status": "sent",
        "items": [{"description": "Radiology", "quantity": "1", "unit_price": total}]
    }, headers=headers)
    return response.json()


def corrupt(db_session, invoice_id, **values):
    db_session.query(Invoice).filter(Invoice.id == UUID(invoice_id)).update(values)
    db_session.commit()


class TestDiscrepancyFormula:

    def test_matches_when_stored_equals_expected(self):
        assert service.compute_discrepancy("600", "1000", "400", "0") == Decimal("0.00")

    def test_credits_reduce_expected_balance(self):
        assert service.compute_discrepancy("500", "1000", "400", "-100") == Decimal("0.00")

    def test_positive_when_stored_is_too_high(self):
        assert service.compute_discrepancy("1000", "1000", "400", "0") == Decimal("400.00")


class TestReconcileInvoice:

    def test_consistent_invoice_matches(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        client.post("/payments", json={"invoice_id": invoice["id"], "amount": "250"}, headers=auth_headers)

        response = client.post(f"/reconciliation/invoices/{invoice['id']}", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "matched"
        assert Decimal(body["calculated_balance"]) == Decimal("750")
        assert body["fixed"] is False

    def test_mismatch_is_reported_and_fixed(self, client, db_session, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        client.post("/payments", json={"invoice_id": invoice["id"], "amount": "1000"}, headers=auth_headers)
        corrupt(db_session, invoice["id"], paid_amount=Decimal("0"), balance_due=Decimal("1000"), status=InvoiceStatus.SENT)

        response = client.get(f"/reconciliation/invoices/{invoice['id']}/discrepancy", headers=auth_headers)
        assert response.json()["has_discrepancy"] is True

        response = client.post(f"/reconciliation/invoices/{invoice['id']}", headers=auth_headers)
        body = response.json()
        assert body["status"] == "mismatched"
        assert Decimal(body["discrepancy"]) == Decimal("1000")
        assert body["expected_status"] == "paid"
        assert body["actual_status"] == "sent"

        response = client.post(f"/reconciliation/invoices/{invoice['id']}?apply=true", headers=auth_headers)
        assert response.json()["fixed"] is True

        stored = db_session.get(Invoice, UUID(invoice["id"]))
        db_session.refresh(stored)
        assert stored.paid_amount == Decimal("1000")
        assert stored.balance_due == Decimal("0")
        assert stored.status == InvoiceStatus.PAID
        assert service.has_balance_discrepancy(db_session, stored.id) is False

    def test_credit_notes_are_included(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        note = client.post("/credit-notes", json={
            "customer_id": str(sample_customer.id),
            "items": [{"description": "Discount", "quantity": "1", "unit_price": "200"}]
        }, headers=auth_headers).json()
        client.post(f"/credit-notes/{note['id']}/apply",
                    json={"invoice_id": invoice["id"], "amount": "200"}, headers=auth_headers)

        body = client.post(f"/reconciliation/invoices/{invoice['id']}", headers=auth_headers).json()
        assert body["status"] == "matched"
        assert Decimal(body["credit_adjustments"]) == Decimal("-200")
        assert Decimal(body["calculated_balance"]) == Decimal("800")

    def test_voided_payments_are_ignored(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        payment = client.post("/payments", json={"invoice_id": invoice["id"], "amount": "300"}, headers=auth_headers).json()
        client.post(f"/payments/{payment['payment_id']}/void", json={"reason": "Reversed"}, headers=auth_headers)

        body = client.post(f"/reconciliation/invoices/{invoice['id']}", headers=auth_headers).json()
        assert body["status"] == "matched"
        assert Decimal(body["calculated_paid_amount"]) == Decimal("0")

    def test_unknown_invoice(self, client, auth_headers):
        response = client.post(f"/reconciliation/invoices/{uuid4()}", headers=auth_headers)
        assert response.status_code == 404


    def test_overdue_partial_invoice_stays_overdue(self, client, db_session, auth_headers, sample_customer, sample_company):
        invoice = client.post("/invoices", json={
            "customer_id": str(sample_customer.id),
            "status": "sent",
            "invoice_date": (date.today() - timedelta(days=31)).isoformat(),
            "due_date": (date.today() - timedelta(days=1)).isoformat(),
            "items": [{"description": "Radiology", "quantity": "1", "unit_price": "1000"}]
        }, headers=auth_headers).json()
        client.post("/payments", json={"invoice_id": invoice["id"], "amount": "250"}, headers=auth_headers)
        assert InvoiceService(db_session).mark_overdue_invoices(sample_company.id) == 1

        assert service.has_balance_discrepancy(db_session, UUID(invoice["id"])) is False

        summary = service.reconcile_all_invoice_balances(db_session, sample_company.id, fix=True)
        assert summary.mismatched == 0
        assert summary.fixed == 0

        client.post("/payments", json={"invoice_id": invoice["id"], "amount": "100"}, headers=auth_headers)
        stored = db_session.get(Invoice, UUID(invoice["id"]))
        db_session.refresh(stored)
        assert stored.status == InvoiceStatus.OVERDUE
        assert stored.balance_due == Decimal("650")

class TestReconcileAll:

    def test_empty_company(self, client, auth_headers):
        response = client.post("/reconciliation/invoices", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 0
        assert body["mismatched"] == 0
        assert body["errors"] == []

    def test_reconcile_all_with_fix(self, client, db_session, auth_headers, sample_customer):
        first = create_invoice(client, auth_headers, sample_customer)
        create_invoice(client, auth_headers, sample_customer)
        corrupt(db_session, first["id"], balance_due=Decimal("10"))

        body = client.post("/reconciliation/invoices?fix=true", headers=auth_headers).json()
        assert body["total"] == 2
        assert body["matched"] == 1
        assert body["mismatched"] == 1
        assert body["fixed"] == 1

        body = client.post("/reconciliation/invoices", headers=auth_headers).json()
        assert body["mismatched"] == 0

    def test_failing_invoice_is_collected_and_others_continue(self, client, db_session, auth_headers, sample_customer,
                                                              sample_company, monkeypatch):
        broken = create_invoice(client, auth_headers, sample_customer)
        create_invoice(client, auth_headers, sample_customer)
        create_invoice(client, auth_headers, sample_customer)
        real_allocated = service.allocated_payments
        rollbacks = []

        def allocated(db, invoice_id):
            if invoice_id == UUID(broken["id"]):
                raise OperationalError("SELECT payment_allocations", {}, Exception("connection reset"))
            return real_allocated(db, invoice_id)

        real_rollback = db_session.rollback

        def rollback():
            rollbacks.append(True)
            real_rollback()

        monkeypatch.setattr(service, "allocated_payments", allocated)
        monkeypatch.setattr(db_session, "rollback", rollback)

        summary = service.reconcile_all_invoice_balances(db_session, sample_company.id)

        assert summary.total == 2
        assert summary.matched == 2
        assert broken["invoice_number"] not in {r.invoice_number for r in summary.results}
        assert len(summary.errors) == 1
        assert broken["id"] in summary.errors[0]
        assert rollbacks == [True]

    def test_nightly_task_fixes_every_company(self, client, db_session, auth_headers, sample_customer, monkeypatch):
        invoice = create_invoice(client, auth_headers, sample_customer)
        corrupt(db_session, invoice["id"], balance_due=Decimal("1"))
        monkeypatch.setattr(reconciliation_tasks, "SessionLocal", lambda: db_session)

        result = reconciliation_tasks.reconcile_all_companies_task(fix=True)

        assert result["status"] == "success"
        assert list(result["companies"].values()) == [{"total": 1, "mismatched": 1, "fixed": 1, "errors": 0}]
        assert db_session.get(Invoice, UUID(invoice["id"])).balance_due == Decimal("1000")


class TestPaymentAuditTrail:

    def test_trail_lists_payments_with_recorder(self, client, auth_headers, sample_customer):
        invoice = create_invoice(client, auth_headers, sample_customer)
        client.post("/payments", json={"invoice_id": invoice["id"], "amount": "100", "payment_method": "mpesa"},
                    headers=auth_headers)
        client.post("/payments", json={"invoice_id": invoice["id"], "amount": "200"}, headers=auth_headers)

        response = client.get(f"/reconciliation/invoices/{invoice['id']}/audit-trail", headers=auth_headers)
        assert response.status_code == 200
        entries = response.json()
        assert len(entries) == 2
        assert {e["payment_method"] for e in entries} == {"mpesa", "cash"}
        assert all(e["created_by"] == "Clinic Owner" for e in entries)

    def test_trail_requires_known_invoice(self, client, auth_headers):
        response = client.get(f"/reconciliation/invoices/{uuid4()}/audit-trail", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.parametrize("role", ["user", "stock_manager"])
    def test_reconcile_requires_finance_role(self, client, db_session, sample_company, role):
        user = make_user(db_session, sample_company, f"{role}@medplus.app", role=ProfileRole(role))
        response = client.post("/reconciliation/invoices", headers=auth_headers_for(user, sample_company))
        assert response.status_code == 403
