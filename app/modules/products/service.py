import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.modules.products.models import Product, StockMovement, MovementType, ReferenceType
from app.modules.products.schemas import ProductCreate, ProductUpdate, ProductList, ProductOut, StockAdjustment

logger = logging.getLogger(__name__)


def create_product(db: Session, data: ProductCreate, company_id: UUID) -> Product:
    existing = db.query(Product).filter(
        Product.company_id == company_id,
        Product.product_code == data.product_code
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A product with code {data.product_code} already exists"
        )

    try:
        product = Product(company_id=company_id, **data.model_dump())
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating product {data.product_code}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating product"
        )


def get_products(
    db: Session,
    company_id: UUID,
    search: Optional[str] = None,
    low_stock_only: bool = False,
    limit: int = 100,
    offset: int = 0
) -> ProductList:
    query = db.query(Product).filter(Product.company_id == company_id, Product.is_active == True)

    if search:
        term = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(term), Product.product_code.ilike(term)))
    if low_stock_only:
        query = query.filter(Product.stock_quantity <= Product.minimum_stock_level)

    total = query.count()
    products = query.order_by(Product.name).offset(offset).limit(limit).all()
    return ProductList(
        products=[ProductOut.model_validate(p) for p in products],
        total=total,
        limit=limit,
        offset=offset
    )


def get_product_by_id(db: Session, company_id: UUID, product_id: UUID) -> Product:
    product = db.query(Product).filter(
        Product.company_id == company_id,
        Product.id == product_id
    ).first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def update_product(db: Session, company_id: UUID, product_id: UUID, data: ProductUpdate) -> Product:
    product = get_product_by_id(db, company_id, product_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def apply_stock_movement(
    db: Session,
    company_id: UUID,
    product_id: UUID,
    movement_type: MovementType,
    quantity: Decimal,
    reference_type: ReferenceType,
    reference_id: Optional[UUID] = None,
    cost_per_unit: Optional[Decimal] = None,
    notes: Optional[str] = None,
    created_by: Optional[UUID] = None
) -> StockMovement:
    """
    Registrar un movimiento y ajustar stock_quantity del producto.

    `quantity` es la magnitud; el signo lo define movement_type (OUT resta).
    Para ADJUSTMENT se usa el valor con su signo. No hace commit: el
    movimiento se confirma junto con el documento que lo origina.
    """
    product = db.query(Product).filter(
        Product.company_id == company_id,
        Product.id == product_id
    ).first()
    if not product:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Product {product_id} does not exist in this company"
        )

    quantity = Decimal(str(quantity))
    if movement_type == MovementType.OUT:
        signed = -abs(quantity)
    elif movement_type == MovementType.IN:
        signed = abs(quantity)
    else:
        signed = quantity

    new_quantity = (product.stock_quantity or Decimal("0")) + signed
    if new_quantity < 0:
        # Las salidas por documento se registran aunque dejen stock negativo
        logger.warning(f"Stock for {product.product_code} goes negative ({new_quantity}) after {reference_type.value} {reference_id}")
    product.stock_quantity = new_quantity

    movement = StockMovement(
        company_id=company_id,
        product_id=product_id,
        movement_type=movement_type.value,
        reference_type=reference_type.value,
        reference_id=reference_id,
        quantity=signed,
        cost_per_unit=cost_per_unit,
        notes=notes,
        created_by=created_by
    )
    db.add(movement)
    db.flush()
    return movement


def adjust_stock(
    db: Session,
    company_id: UUID,
    product_id: UUID,
    data: StockAdjustment,
    user_id: Optional[UUID] = None
) -> Product:
    """Ajuste manual de inventario a una cantidad absoluta."""
    product = get_product_by_id(db, company_id, product_id)
    delta = data.new_quantity - (product.stock_quantity or Decimal("0"))
    if delta == 0:
        return product

    try:
        apply_stock_movement(
            db, company_id, product_id,
            MovementType.ADJUSTMENT, delta, ReferenceType.ADJUSTMENT,
            cost_per_unit=product.cost_price,
            notes=data.notes,
            created_by=user_id
        )
        db.commit()
        db.refresh(product)
        return product
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error adjusting stock for {product_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error adjusting stock"
        )


def get_movements(db: Session, company_id: UUID, product_id: Optional[UUID] = None,
                  reference_id: Optional[UUID] = None, limit: int = 100, offset: int = 0):
    query = db.query(StockMovement).filter(StockMovement.company_id == company_id)
    if product_id:
        query = query.filter(StockMovement.product_id == product_id)
    if reference_id:
        query = query.filter(StockMovement.reference_id == reference_id)
    return query.order_by(StockMovement.created_at.desc()).offset(offset).limit(limit).all()
