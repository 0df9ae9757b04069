from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from uuid import UUID
from decimal import Decimal
from datetime import datetime
from app.common.validators import validate_email, validate_phone_number


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    tax_number: Optional[str] = Field(None, max_length=50)
    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    payment_terms_days: int = Field(30, ge=0, le=365)
    is_supplier: bool = False

    @field_validator('email')
    @classmethod
    def check_email(cls, v):
        if v and not validate_email(v):
            raise ValueError("Please enter a valid email address")
        return v

    @field_validator('phone')
    @classmethod
    def check_phone(cls, v):
        valid, error = validate_phone_number(v)
        if not valid:
            raise ValueError(error)
        return v


class CustomerCreate(CustomerBase):
    customer_code: Optional[str] = Field(None, max_length=20)


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    tax_number: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    payment_terms_days: Optional[int] = Field(None, ge=0, le=365)
    is_supplier: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator('email')
    @classmethod
    def check_email(cls, v):
        if v and not validate_email(v):
            raise ValueError("Please enter a valid email address")
        return v


class CustomerOut(CustomerBase):
    id: UUID
    company_id: UUID
    customer_code: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerList(BaseModel):
    customers: List[CustomerOut]
    total: int
    limit: int
    offset: int


class CustomerBalance(BaseModel):
    customer_id: UUID
    total_invoiced: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
    open_invoices: int
    credit_limit: Decimal
    available_credit: Decimal
