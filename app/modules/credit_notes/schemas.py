from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from app.common.schemas import LineItemCreate, LineItemOut


class CreditNoteStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    APPLIED = "applied"
    CANCELLED = "cancelled"


class CreditNoteCreate(BaseModel):
    customer_id: UUID
    invoice_id: Optional[UUID] = None
    credit_note_date: date = Field(default_factory=date.today)
    status: CreditNoteStatus = CreditNoteStatus.ISSUED
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    affects_inventory: bool = False
    items: List[LineItemCreate] = Field(..., min_length=1, description="At least one item is required")

    @field_validator('status')
    @classmethod
    def validate_initial_status(cls, v):
        if v not in (CreditNoteStatus.DRAFT, CreditNoteStatus.ISSUED):
            raise ValueError('New credit notes must be draft or issued')
        return v


class CreditNoteApply(BaseModel):
    invoice_id: UUID
    amount: Decimal = Field(..., gt=0)


class CreditNoteAllocationOut(BaseModel):
    id: UUID
    invoice_id: UUID
    allocated_amount: Decimal
    allocation_date: date

    class Config:
        from_attributes = True


class CreditNoteOut(BaseModel):
    id: UUID
    company_id: UUID
    customer_id: UUID
    invoice_id: Optional[UUID] = None
    credit_note_number: str
    credit_note_date: date
    status: CreditNoteStatus
    reason: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    applied_amount: Decimal
    balance: Decimal
    affects_inventory: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreditNoteDetail(CreditNoteOut):
    notes: Optional[str] = None
    items: List[LineItemOut] = []
    allocations: List[CreditNoteAllocationOut] = []


class CreditNoteList(BaseModel):
    credit_notes: List[CreditNoteOut]
    total: int
    limit: int
    offset: int


class CreditNoteCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)
