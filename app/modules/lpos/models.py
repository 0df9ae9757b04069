from app.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date, Text, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin
import enum


class LPOStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    RECEIVED = "received"    # Mercancía recibida, stock ingresado
    CANCELLED = "cancelled"


class LPO(Base, CompanyMixin, TimestampMixin):
    """Orden de compra local (Local Purchase Order) a un proveedor."""
    __tablename__ = "lpos"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    supplier_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    lpo_number = Column(String(50), nullable=False)
    lpo_date = Column(Date, nullable=False, default=date.today)
    delivery_date = Column(Date, nullable=True)
    status = Column(Enum(LPOStatus), nullable=False, default=LPOStatus.DRAFT)

    delivery_address = Column(Text, nullable=True)
    contact_person = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    supplier = relationship("Customer")
    items = relationship("LPOItem", back_populates="lpo", cascade="all, delete-orphan",
                         order_by="LPOItem.sort_order")

    __table_args__ = (
        UniqueConstraint("company_id", "lpo_number", name="uq_lpo_company_number"),
    )


class LPOItem(Base):
    __tablename__ = "lpo_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    lpo_id = Column(UUID(as_uuid=True), ForeignKey("lpos.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True)

    description = Column(Text, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)  # Costo de compra
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    lpo = relationship("LPO", back_populates="items")
