from pydantic import BaseModel
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime


class InvoiceReconciliation(BaseModel):
    invoice_id: UUID
    invoice_number: str
    total_amount: Decimal
    calculated_paid_amount: Decimal
    stored_paid_amount: Decimal
    credit_adjustments: Decimal  # Negativo: créditos aplicados reducen el saldo
    calculated_balance: Decimal
    stored_balance: Decimal
    discrepancy: Decimal  # stored_balance - calculated_balance
    status: str  # matched | mismatched
    expected_status: str
    actual_status: str
    fixed: bool = False


class ReconciliationSummary(BaseModel):
    total: int = 0
    matched: int = 0
    mismatched: int = 0
    fixed: int = 0
    results: List[InvoiceReconciliation] = []
    errors: List[str] = []


class DiscrepancyCheck(BaseModel):
    invoice_id: UUID
    has_discrepancy: bool


class PaymentAuditEntry(BaseModel):
    allocation_id: UUID
    payment_id: UUID
    payment_number: str
    payment_amount: Decimal
    allocated_amount: Decimal
    payment_method: str
    payment_date: date
    reference_number: Optional[str] = None
    is_voided: bool
    created_by: Optional[str] = None  # Nombre o email de quien registró el pago
    created_at: Optional[datetime] = None
