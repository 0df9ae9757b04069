from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.conversions.service import convert_proforma_to_invoice
from app.modules.invoices.schemas import InvoiceDetail
from app.modules.proformas.models import ProformaStatus as ProformaStatusModel
from app.modules.proformas.service import ProformaService
from app.modules.proformas.schemas import (
    ProformaCreate, ProformaDetail, ProformaList, ProformaStatusUpdate, ProformaStatus
)

router = APIRouter(prefix="/proformas", tags=["Proforma Invoices"])

WRITE_ROLES = ["admin", "accountant", "user"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=ProformaDetail, status_code=status.HTTP_201_CREATED)
def create_proforma(
    data: ProformaCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return ProformaService(db).create_proforma(data, auth_context.company_id, auth_context.user_id)


@router.get("", response_model=ProformaList)
def list_proformas(
    status_filter: Optional[ProformaStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    model_status = ProformaStatusModel(status_filter.value) if status_filter else None
    return ProformaService(db).get_proformas(auth_context.company_id, model_status, customer_id, limit, offset)


@router.get("/{proforma_id}", response_model=ProformaDetail)
def get_proforma(
    proforma_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return ProformaService(db).get_proforma(proforma_id, auth_context.company_id)


@router.post("/{proforma_id}/status", response_model=ProformaDetail)
def change_proforma_status(
    proforma_id: UUID,
    data: ProformaStatusUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return ProformaService(db).change_status(
        proforma_id, ProformaStatusModel(data.status.value), auth_context.company_id, data.notes
    )


@router.post("/{proforma_id}/convert-to-invoice", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def proforma_to_invoice(
    proforma_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return convert_proforma_to_invoice(db, proforma_id, auth_context.company_id, auth_context.user_id)
