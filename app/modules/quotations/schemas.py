from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from app.common.schemas import LineItemCreate, LineItemOut


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"


class QuotationCreate(BaseModel):
    customer_id: UUID
    quotation_date: date = Field(default_factory=date.today)
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1, description="At least one item is required")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.valid_until and self.valid_until < self.quotation_date:
            raise ValueError('Valid until cannot be before the quotation date')
        return self


class QuotationUpdate(BaseModel):
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus
    notes: Optional[str] = None


class QuotationOut(BaseModel):
    id: UUID
    company_id: UUID
    customer_id: UUID
    quotation_number: str
    quotation_date: date
    valid_until: Optional[date] = None
    status: QuotationStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    converted_document_type: Optional[str] = None
    converted_document_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuotationDetail(QuotationOut):
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LineItemOut] = []


class QuotationList(BaseModel):
    quotations: List[QuotationOut]
    total: int
    limit: int
    offset: int
