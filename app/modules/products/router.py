from fastapi import APIRouter, status, Depends, Query
from uuid import UUID
from typing import List, Optional
from sqlalchemy.orm import Session
from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.products import service
from app.modules.products.schemas import (
    ProductCreate, ProductUpdate, ProductOut, ProductList, StockAdjustment, StockMovementOut
)

product_router = APIRouter(prefix="/products", tags=["Products"])

STOCK_ROLES = ["admin", "stock_manager"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@product_router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(STOCK_ROLES))
):
    return service.create_product(db, data, auth_context.company_id)


@product_router.get("", response_model=ProductList)
def list_products(
    search: Optional[str] = Query(None),
    low_stock_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    """Listar productos activos; low_stock_only filtra por debajo del mínimo."""
    return service.get_products(db, auth_context.company_id, search, low_stock_only, limit, offset)


@product_router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return service.get_product_by_id(db, auth_context.company_id, product_id)


@product_router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: UUID,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(STOCK_ROLES))
):
    return service.update_product(db, auth_context.company_id, product_id, data)


@product_router.post("/{product_id}/adjust-stock", response_model=ProductOut)
def adjust_stock(
    product_id: UUID,
    data: StockAdjustment,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(STOCK_ROLES))
):
    return service.adjust_stock(db, auth_context.company_id, product_id, data, auth_context.user_id)


@product_router.get("/{product_id}/movements", response_model=List[StockMovementOut])
def get_product_movements(
    product_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return service.get_movements(db, auth_context.company_id, product_id=product_id, limit=limit, offset=offset)
