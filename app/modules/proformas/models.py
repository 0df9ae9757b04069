from app.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, LineItemMixin
import enum


class ProformaStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CONVERTED = "converted"


class ProformaInvoice(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "proforma_invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    quotation_id = Column(UUID(as_uuid=True), ForeignKey("quotations.id"), nullable=True)  # Origen
    converted_invoice_id = Column(UUID(as_uuid=True), nullable=True)

    proforma_number = Column(String(50), nullable=False)
    proforma_date = Column(Date, nullable=False, default=date.today)
    valid_until = Column(Date, nullable=True)
    status = Column(Enum(ProformaStatus), nullable=False, default=ProformaStatus.DRAFT)

    notes = Column(Text, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    customer = relationship("Customer")
    items = relationship("ProformaItem", back_populates="proforma", cascade="all, delete-orphan",
                         order_by="ProformaItem.sort_order")

    __table_args__ = (
        UniqueConstraint("company_id", "proforma_number", name="uq_proforma_company_number"),
    )


class ProformaItem(Base, LineItemMixin):
    __tablename__ = "proforma_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    proforma_id = Column(UUID(as_uuid=True), ForeignKey("proforma_invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    proforma = relationship("ProformaInvoice", back_populates="items")
