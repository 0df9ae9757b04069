from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin
import enum


class MovementType(enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class ReferenceType(enum.Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    LPO = "LPO"
    ADJUSTMENT = "ADJUSTMENT"


class Product(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_code = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    unit_of_measure = Column(String(20), nullable=False, default="pcs")
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de venta
    cost_price = Column(Numeric(15, 2), nullable=False, default=0)
    stock_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    minimum_stock_level = Column(Numeric(12, 3), nullable=False, default=0)  # Umbral de alerta
    is_active = Column(Boolean, default=True)

    # Relationships
    movements = relationship("StockMovement", back_populates="product")

    __table_args__ = (
        UniqueConstraint("company_id", "product_code", name="uq_product_company_code"),
    )

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.minimum_stock_level or 0)


class StockMovement(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "stock_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)

    movement_type = Column(String(20), nullable=False)  # IN, OUT, ADJUSTMENT
    reference_type = Column(String(20), nullable=False)  # INVOICE, CREDIT_NOTE, LPO, ADJUSTMENT
    reference_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    quantity = Column(Numeric(12, 3), nullable=False)  # Positiva en entradas, negativa en salidas
    cost_per_unit = Column(Numeric(15, 2), nullable=True)
    notes = Column(String(255), nullable=True)

    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    # Relationships
    product = relationship("Product", back_populates="movements")
