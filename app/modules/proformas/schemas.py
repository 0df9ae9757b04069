from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from app.common.schemas import LineItemCreate, LineItemOut


class ProformaStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CONVERTED = "converted"


class ProformaCreate(BaseModel):
    customer_id: UUID
    proforma_date: date = Field(default_factory=date.today)
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1, description="At least one item is required")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.valid_until and self.valid_until < self.proforma_date:
            raise ValueError('Valid until cannot be before the proforma date')
        return self


class ProformaStatusUpdate(BaseModel):
    status: ProformaStatus
    notes: Optional[str] = None


class ProformaOut(BaseModel):
    id: UUID
    company_id: UUID
    customer_id: UUID
    quotation_id: Optional[UUID] = None
    converted_invoice_id: Optional[UUID] = None
    proforma_number: str
    proforma_date: date
    valid_until: Optional[date] = None
    status: ProformaStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProformaDetail(ProformaOut):
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LineItemOut] = []


class ProformaList(BaseModel):
    proformas: List[ProformaOut]
    total: int
    limit: int
    offset: int
