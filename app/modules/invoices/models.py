from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, LineItemMixin
import enum


class InvoiceStatus(enum.Enum):
    DRAFT = "draft"          # Borrador, no afecta inventario
    SENT = "sent"            # Emitida, pendiente de pago
    PARTIAL = "partial"      # Con pagos o créditos parciales
    PAID = "paid"            # Saldo cubierto
    OVERDUE = "overdue"      # Vencida con saldo pendiente
    CANCELLED = "cancelled"  # Anulada


class Invoice(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)

    # References
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    # Documento de origen cuando la factura viene de una conversión
    quotation_id = Column(UUID(as_uuid=True), ForeignKey("quotations.id"), nullable=True)
    proforma_id = Column(UUID(as_uuid=True), ForeignKey("proforma_invoices.id"), nullable=True)

    invoice_number = Column(String(50), nullable=False)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT)
    lpo_number = Column(String(50), nullable=True)  # Orden de compra del cliente

    # Dates
    invoice_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)

    # Content
    notes = Column(Text, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default="KES")

    # Totals
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    # Saldos almacenados; la conciliación los compara con las asignaciones
    paid_amount = Column(Numeric(15, 2), nullable=False, default=0)
    balance_due = Column(Numeric(15, 2), nullable=False, default=0)

    affects_inventory = Column(Boolean, nullable=False, default=True)
    stock_booked = Column(Boolean, nullable=False, default=False)  # Movimientos OUT ya registrados

    # Relationships
    customer = relationship("Customer")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceItem.sort_order")

    __table_args__ = (
        UniqueConstraint("company_id", "invoice_number", name="uq_invoice_company_number"),
    )


class InvoiceItem(Base, LineItemMixin):
    __tablename__ = "invoice_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")
    product = relationship("Product")
