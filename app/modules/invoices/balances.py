"""
Saldos de facturas: pagos asignados, créditos aplicados y estado derivado.

Lo usan pagos, notas crédito y la conciliación para que todos deriven
paid_amount / balance_due / status con la misma regla.
"""
from decimal import Decimal
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.common.totals import money
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.payments.models import Payment, PaymentAllocation
from app.modules.credit_notes.models import CreditNote, CreditNoteAllocation, CreditNoteStatus


def allocated_payments(db: Session, invoice_id: UUID) -> Decimal:
    """Suma de asignaciones de pagos no anulados."""
    total = db.query(func.coalesce(func.sum(PaymentAllocation.amount_allocated), 0)).join(
        Payment, Payment.id == PaymentAllocation.payment_id
    ).filter(
        PaymentAllocation.invoice_id == invoice_id,
        Payment.is_voided == False
    ).scalar()
    return money(total)


def applied_credits(db: Session, invoice_id: UUID) -> Decimal:
    """Monto acreditado a la factura por notas crédito no canceladas (positivo)."""
    total = db.query(func.coalesce(func.sum(CreditNoteAllocation.allocated_amount), 0)).join(
        CreditNote, CreditNote.id == CreditNoteAllocation.credit_note_id
    ).filter(
        CreditNoteAllocation.invoice_id == invoice_id,
        CreditNote.status != CreditNoteStatus.CANCELLED
    ).scalar()
    return money(total)


def expected_status(current: InvoiceStatus, paid: Decimal, credited: Decimal, balance: Decimal) -> InvoiceStatus:
    """
    Estado que corresponde a los montos calculados. Una factura vencida
    sigue vencida mientras tenga saldo.
    """
    if current == InvoiceStatus.CANCELLED:
        return current
    settled = paid > 0 or credited > 0
    if settled and balance <= 0:
        return InvoiceStatus.PAID
    if current == InvoiceStatus.OVERDUE:
        return current
    if settled:
        return InvoiceStatus.PARTIAL
    if current in (InvoiceStatus.PAID, InvoiceStatus.PARTIAL):
        return InvoiceStatus.SENT
    return current


def refresh_invoice_balance(db: Session, invoice: Invoice) -> Invoice:
    """Recalcular y asignar paid_amount, balance_due y status (sin commit)."""
    paid = allocated_payments(db, invoice.id)
    credited = applied_credits(db, invoice.id)
    balance = money(invoice.total_amount) - paid - credited

    invoice.paid_amount = paid
    invoice.balance_due = balance
    invoice.status = expected_status(invoice.status, paid, credited, balance)
    db.flush()
    return invoice
