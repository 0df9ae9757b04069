from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Numeric, Enum, Date, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, LineItemMixin
import enum


class CreditNoteStatus(enum.Enum):
    DRAFT = "draft"
    ISSUED = "issued"        # Disponible para aplicar
    APPLIED = "applied"      # Saldo totalmente aplicado
    CANCELLED = "cancelled"


class CreditNote(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "credit_notes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id"), nullable=True)  # Factura de origen
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    credit_note_number = Column(String(50), nullable=False)
    credit_note_date = Column(Date, nullable=False, default=date.today)
    status = Column(Enum(CreditNoteStatus), nullable=False, default=CreditNoteStatus.DRAFT)
    reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    applied_amount = Column(Numeric(15, 2), nullable=False, default=0)
    balance = Column(Numeric(15, 2), nullable=False, default=0)  # total_amount - applied_amount

    affects_inventory = Column(Boolean, nullable=False, default=False)  # Devolución de mercancía

    # Relationships
    customer = relationship("Customer")
    items = relationship("CreditNoteItem", back_populates="credit_note", cascade="all, delete-orphan",
                         order_by="CreditNoteItem.sort_order")
    allocations = relationship("CreditNoteAllocation", back_populates="credit_note", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("company_id", "credit_note_number", name="uq_credit_note_company_number"),
    )


class CreditNoteItem(Base, LineItemMixin):
    __tablename__ = "credit_note_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    credit_note_id = Column(UUID(as_uuid=True), ForeignKey("credit_notes.id", ondelete="CASCADE"), nullable=False, index=True)

    credit_note = relationship("CreditNote", back_populates="items")


class CreditNoteAllocation(Base, TimestampMixin):
    __tablename__ = "credit_note_allocations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    credit_note_id = Column(UUID(as_uuid=True), ForeignKey("credit_notes.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    allocated_amount = Column(Numeric(15, 2), nullable=False)
    allocation_date = Column(Date, nullable=False, default=date.today)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    credit_note = relationship("CreditNote", back_populates="allocations")
    invoice = relationship("Invoice")
