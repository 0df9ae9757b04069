"""
Conciliación de saldos de facturas.

Recalcula paid_amount, balance_due y status a partir de las asignaciones de
pagos y notas crédito, los compara con lo almacenado y opcionalmente corrige.

    expected_balance = total_amount - payments + credits

donde `credits` es el ajuste con signo de las notas crédito aplicadas
(negativo, reduce el saldo).
"""
import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.common.errors import BackendError, extract_error_message
from app.common.totals import money
from app.core.config import settings
from app.modules.auth.models import Profile
from app.modules.invoices.balances import allocated_payments, applied_credits, expected_status
from app.modules.invoices.models import Invoice
from app.modules.payments.models import Payment, PaymentAllocation
from app.modules.reconciliation.schemas import InvoiceReconciliation, ReconciliationSummary, PaymentAuditEntry

logger = logging.getLogger(__name__)

MATCHED = "matched"
MISMATCHED = "mismatched"


def _tolerance() -> Decimal:
    return Decimal(settings.BALANCE_TOLERANCE)


def compute_discrepancy(stored_balance, total_amount, payments, credits) -> Decimal:
    """stored_balance - (total - payments + credits)."""
    expected = money(total_amount) - money(payments) + money(credits)
    return money(stored_balance) - expected


def reconcile_invoice_balance(
    db: Session,
    invoice_id: UUID,
    company_id: Optional[UUID] = None,
    apply: bool = False
) -> InvoiceReconciliation:
    """
    Conciliar una factura. Con apply=True y discrepancia, persiste paid_amount,
    balance_due y status en un solo UPDATE.

    Errores de lectura o escritura se propagan como BackendError, sin reintento.
    """
    try:
        query = db.query(Invoice).filter(Invoice.id == invoice_id)
        if company_id:
            query = query.filter(Invoice.company_id == company_id)
        invoice = query.first()
    except SQLAlchemyError as e:
        db.rollback()
        raise BackendError(f"Failed to load invoice {invoice_id}: {extract_error_message(e)}")

    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")

    try:
        payments = allocated_payments(db, invoice.id)
        credited = applied_credits(db, invoice.id)
    except SQLAlchemyError as e:
        db.rollback()
        raise BackendError(f"Failed to load allocations for invoice {invoice.invoice_number}: {extract_error_message(e)}")

    credits = -credited
    total = money(invoice.total_amount)
    calculated_balance = total - payments + credits
    stored_paid = money(invoice.paid_amount)
    stored_balance = money(invoice.balance_due)
    discrepancy = compute_discrepancy(stored_balance, total, payments, credits)
    expected = expected_status(invoice.status, payments, credited, calculated_balance)

    tolerance = _tolerance()
    mismatched = (
        abs(stored_paid - payments) > tolerance
        or abs(discrepancy) > tolerance
        or invoice.status != expected
    )

    report = InvoiceReconciliation(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        total_amount=total,
        calculated_paid_amount=payments,
        stored_paid_amount=stored_paid,
        credit_adjustments=credits,
        calculated_balance=calculated_balance,
        stored_balance=stored_balance,
        discrepancy=discrepancy,
        status=MISMATCHED if mismatched else MATCHED,
        expected_status=expected.value,
        actual_status=invoice.status.value
    )

    if apply and mismatched:
        try:
            db.query(Invoice).filter(Invoice.id == invoice.id).update(
                {
                    Invoice.paid_amount: payments,
                    Invoice.balance_due: calculated_balance,
                    Invoice.status: expected,
                },
                synchronize_session="fetch"
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise BackendError(f"Failed to update invoice {invoice.invoice_number}: {extract_error_message(e)}")
        report.fixed = True
        logger.info(
            f"Invoice {invoice.invoice_number} reconciled: balance {stored_balance} -> {calculated_balance}, "
            f"status {report.actual_status} -> {report.expected_status}"
        )
    elif mismatched:
        logger.warning(f"Invoice {invoice.invoice_number} balance discrepancy: {discrepancy}")

    return report


def reconcile_all_invoice_balances(db: Session, company_id: UUID, fix: bool = False) -> ReconciliationSummary:
    """
    Conciliar todas las facturas de la empresa, de la más reciente a la más antigua.

    Un error en una factura queda registrado en `errors` y el proceso continúa.
    """
    try:
        invoice_ids: List[UUID] = [
            row.id for row in db.query(Invoice.id).filter(
                Invoice.company_id == company_id
            ).order_by(Invoice.created_at.desc()).all()
        ]
    except SQLAlchemyError as e:
        db.rollback()
        raise BackendError(f"Failed to list invoices: {extract_error_message(e)}")

    summary = ReconciliationSummary()
    for invoice_id in invoice_ids:
        try:
            result = reconcile_invoice_balance(db, invoice_id, company_id, apply=fix)
        except (BackendError, HTTPException) as e:
            summary.errors.append(f"Invoice {invoice_id}: {extract_error_message(e)}")
            continue
        summary.results.append(result)

    summary.total = len(summary.results)
    summary.matched = sum(1 for r in summary.results if r.status == MATCHED)
    summary.mismatched = sum(1 for r in summary.results if r.status == MISMATCHED)
    summary.fixed = sum(1 for r in summary.results if r.fixed)

    logger.info(
        f"Reconciliation for company {company_id}: {summary.total} checked, "
        f"{summary.mismatched} mismatched, {summary.fixed} fixed, {len(summary.errors)} errors"
    )
    return summary


def has_balance_discrepancy(db: Session, invoice_id: UUID, company_id: Optional[UUID] = None) -> bool:
    return reconcile_invoice_balance(db, invoice_id, company_id).status == MISMATCHED


def get_payment_audit_trail(db: Session, invoice_id: UUID, company_id: UUID) -> List[PaymentAuditEntry]:
    """Historial de pagos asignados a la factura, más reciente primero."""
    invoice = db.query(Invoice.id).filter(
        Invoice.id == invoice_id,
        Invoice.company_id == company_id
    ).first()
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")

    rows = db.query(PaymentAllocation, Payment, Profile).join(
        Payment, Payment.id == PaymentAllocation.payment_id
    ).outerjoin(
        Profile, Profile.user_id == Payment.created_by
    ).filter(
        PaymentAllocation.invoice_id == invoice_id
    ).order_by(PaymentAllocation.created_at.desc()).all()

    return [
        PaymentAuditEntry(
            allocation_id=allocation.id,
            payment_id=payment.id,
            payment_number=payment.payment_number,
            payment_amount=payment.amount,
            allocated_amount=allocation.amount_allocated,
            payment_method=payment.payment_method.value,
            payment_date=payment.payment_date,
            reference_number=payment.reference_number,
            is_voided=payment.is_voided,
            created_by=(profile.full_name or profile.email) if profile else None,
            created_at=allocation.created_at
        )
        for allocation, payment, profile in rows
    ]
