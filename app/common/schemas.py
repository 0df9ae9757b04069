"""
Schemas compartidos por los documentos con líneas de detalle.
"""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional
from uuid import UUID


class LineItemCreate(BaseModel):
    product_id: Optional[UUID] = None
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0, description="Quantity must be greater than 0")
    unit_price: Decimal = Field(..., ge=0)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    tax_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)

    @field_validator('description')
    @classmethod
    def strip_description(cls, v):
        if not v.strip():
            raise ValueError('Description is required')
        return v.strip()


class LineItemOut(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_percentage: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    line_total: Decimal
    sort_order: int

    class Config:
        from_attributes = True
