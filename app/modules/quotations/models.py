from app.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, LineItemMixin
import enum


class QuotationStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"  # Ya generó una factura o proforma


class Quotation(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "quotations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    quotation_number = Column(String(50), nullable=False)
    quotation_date = Column(Date, nullable=False, default=date.today)
    valid_until = Column(Date, nullable=True)
    status = Column(Enum(QuotationStatus), nullable=False, default=QuotationStatus.DRAFT)

    notes = Column(Text, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Documento generado por la conversión ("invoice" o "proforma")
    converted_document_type = Column(String(20), nullable=True)
    converted_document_id = Column(UUID(as_uuid=True), nullable=True)

    # Relationships
    customer = relationship("Customer")
    items = relationship("QuotationItem", back_populates="quotation", cascade="all, delete-orphan",
                         order_by="QuotationItem.sort_order")

    __table_args__ = (
        UniqueConstraint("company_id", "quotation_number", name="uq_quotation_company_number"),
    )


class QuotationItem(Base, LineItemMixin):
    __tablename__ = "quotation_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    quotation_id = Column(UUID(as_uuid=True), ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True)

    quotation = relationship("Quotation", back_populates="items")
