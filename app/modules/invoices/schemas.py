from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from app.common.schemas import LineItemCreate, LineItemOut


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceCreate(BaseModel):
    customer_id: UUID
    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    lpo_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    affects_inventory: bool = True
    items: List[LineItemCreate] = Field(..., min_length=1, description="At least one item is required")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.due_date and self.due_date < self.invoice_date:
            raise ValueError('Due date cannot be before the invoice date')
        if self.status not in (InvoiceStatus.DRAFT, InvoiceStatus.SENT):
            raise ValueError('New invoices must be draft or sent')
        return self


class InvoiceUpdate(BaseModel):
    """Solo aplica a facturas en borrador."""
    due_date: Optional[date] = None
    lpo_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class InvoiceOut(BaseModel):
    id: UUID
    company_id: UUID
    customer_id: UUID
    invoice_number: str
    status: InvoiceStatus
    invoice_date: date
    due_date: Optional[date] = None
    lpo_number: Optional[str] = None
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    affects_inventory: bool
    quotation_id: Optional[UUID] = None
    proforma_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LineItemOut] = []


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int


class InvoiceCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)
