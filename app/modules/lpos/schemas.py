from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum


class LPOStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class LPOItemCreate(BaseModel):
    # Reglas en validate_lpo
    product_id: Optional[UUID] = None
    description: Optional[str] = None
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)


class LPOCreate(BaseModel):
    supplier_id: Optional[UUID] = None
    lpo_date: Optional[date] = Field(default_factory=date.today)
    delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    contact_person: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LPOItemCreate] = []


class LPOStatusUpdate(BaseModel):
    status: LPOStatus


class LPOItemOut(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    line_total: Decimal
    sort_order: int

    class Config:
        from_attributes = True


class LPOOut(BaseModel):
    id: UUID
    company_id: UUID
    supplier_id: UUID
    lpo_number: str
    lpo_date: date
    delivery_date: Optional[date] = None
    status: LPOStatus
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LPODetail(LPOOut):
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    items: List[LPOItemOut] = []


class LPOList(BaseModel):
    lpos: List[LPOOut]
    total: int
    limit: int
    offset: int
