from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from decimal import Decimal
from datetime import datetime
from enum import Enum


class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class ProductCreate(BaseModel):
    product_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    unit_of_measure: str = Field("pcs", max_length=20)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    stock_quantity: Decimal = Field(Decimal("0"), ge=0)
    minimum_stock_level: Decimal = Field(Decimal("0"), ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    unit_of_measure: Optional[str] = Field(None, max_length=20)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    minimum_stock_level: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductOut(BaseModel):
    id: UUID
    company_id: UUID
    product_code: str
    name: str
    description: Optional[str] = None
    unit_of_measure: str
    unit_price: Decimal
    cost_price: Decimal
    stock_quantity: Decimal
    minimum_stock_level: Decimal
    is_active: bool
    is_low_stock: bool

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    products: List[ProductOut]
    total: int
    limit: int
    offset: int


class StockAdjustment(BaseModel):
    """Ajuste manual: new_quantity fija el stock absoluto."""
    new_quantity: Decimal = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=255)


class StockMovementOut(BaseModel):
    id: UUID
    product_id: UUID
    movement_type: MovementType
    reference_type: str
    reference_id: Optional[UUID] = None
    quantity: Decimal
    cost_per_unit: Optional[Decimal] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
