from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.lpos.models import LPOStatus as LPOStatusModel
from app.modules.lpos.service import LPOService
from app.modules.lpos.schemas import LPOCreate, LPODetail, LPOList, LPOStatusUpdate, LPOStatus

router = APIRouter(prefix="/lpos", tags=["Local Purchase Orders"])

WRITE_ROLES = ["admin", "accountant", "stock_manager"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=LPODetail, status_code=status.HTTP_201_CREATED)
def create_lpo(
    data: LPOCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return LPOService(db).create_lpo(data, auth_context.company_id, auth_context.user_id)


@router.get("", response_model=LPOList)
def list_lpos(
    status_filter: Optional[LPOStatus] = Query(None, alias="status"),
    supplier_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    model_status = LPOStatusModel(status_filter.value) if status_filter else None
    return LPOService(db).get_lpos(auth_context.company_id, model_status, supplier_id, limit, offset)


@router.get("/{lpo_id}", response_model=LPODetail)
def get_lpo(
    lpo_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return LPOService(db).get_lpo(lpo_id, auth_context.company_id)


@router.put("/{lpo_id}", response_model=LPODetail)
def update_lpo(
    lpo_id: UUID,
    data: LPOCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return LPOService(db).update_lpo(lpo_id, data, auth_context.company_id)


@router.post("/{lpo_id}/status", response_model=LPODetail)
def change_lpo_status(
    lpo_id: UUID,
    data: LPOStatusUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return LPOService(db).change_status(lpo_id, LPOStatusModel(data.status.value), auth_context.company_id)


@router.post("/{lpo_id}/receive", response_model=LPODetail)
def receive_lpo(
    lpo_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """Recibir la mercancía e ingresar el inventario."""
    return LPOService(db).receive_lpo(lpo_id, auth_context.company_id, auth_context.user_id)
