"""
Clientes y proveedores de la empresa.

Un mismo registro puede actuar como proveedor en órdenes de compra (LPO)
marcando is_supplier.
"""
from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Numeric, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, SoftDeleteMixin


class Customer(Base, CompanyMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "customers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_code = Column(String(20), nullable=False)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True, default="Kenya")
    tax_number = Column(String(50), nullable=True)
    credit_limit = Column(Numeric(15, 2), nullable=False, default=0)
    payment_terms_days = Column(Integer, nullable=False, default=30)
    is_supplier = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("company_id", "customer_code", name="uq_customer_code_company"),
    )

    def __repr__(self):
        return f"<Customer(code='{self.customer_code}', name='{self.name}')>"
