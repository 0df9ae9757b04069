from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from datetime import datetime
import enum
import uuid


class DocumentType(enum.Enum):
    INVOICE = "invoice"
    QUOTATION = "quotation"
    PROFORMA = "proforma"
    PAYMENT = "payment"
    CREDIT_NOTE = "credit_note"
    LPO = "lpo"


DEFAULT_PREFIXES = {
    DocumentType.INVOICE: "INV-",
    DocumentType.QUOTATION: "QT-",
    DocumentType.PROFORMA: "PF-",
    DocumentType.PAYMENT: "PAY-",
    DocumentType.CREDIT_NOTE: "CN-",
    DocumentType.LPO: "LPO-",
}


class Company(Base):
    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    name = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    registration_number = Column(String(50), nullable=True)
    tax_number = Column(String(50), nullable=True)
    currency = Column(String(3), nullable=False, default="KES")
    logo_url = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DocumentSequence(Base):
    """Secuencias de numeración por empresa y tipo de documento"""
    __tablename__ = "document_sequences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    document_type = Column(String(20), nullable=False)
    prefix = Column(String(10), nullable=True)
    current_number = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("company_id", "document_type", name="uq_sequence_company_type"),
    )
