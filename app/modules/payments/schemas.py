from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import date, datetime
from enum import Enum


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    MPESA = "mpesa"
    CHEQUE = "cheque"
    CARD = "card"
    OTHER = "other"


class PaymentCreate(BaseModel):
    invoice_id: UUID
    customer_id: Optional[UUID] = None  # Por defecto el cliente de la factura
    payment_number: Optional[str] = Field(None, max_length=50)
    payment_date: date = Field(default_factory=date.today)
    # Se valida en el servicio (> 0)
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentAllocationResult(BaseModel):
    success: bool = True
    payment_id: UUID
    payment_number: str
    amount_allocated: Decimal
    invoice_id: UUID
    invoice_balance: Decimal
    invoice_status: str


class PaymentAllocationOut(BaseModel):
    id: UUID
    invoice_id: UUID
    amount_allocated: Decimal

    class Config:
        from_attributes = True


class PaymentOut(BaseModel):
    id: UUID
    company_id: UUID
    customer_id: UUID
    payment_number: str
    payment_date: date
    amount: Decimal
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    is_voided: bool
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    allocations: List[PaymentAllocationOut] = []

    class Config:
        from_attributes = True


class PaymentList(BaseModel):
    payments: List[PaymentOut]
    total: int
    limit: int
    offset: int


class PaymentVoid(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class DiagnosticResult(BaseModel):
    success: bool
    message: str
    details: Dict[str, Any] = {}
