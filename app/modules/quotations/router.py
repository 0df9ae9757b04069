from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.conversions.service import convert_quotation_to_invoice, convert_quotation_to_proforma
from app.modules.invoices.schemas import InvoiceDetail
from app.modules.proformas.schemas import ProformaDetail
from app.modules.quotations.models import QuotationStatus as QuotationStatusModel
from app.modules.quotations.service import QuotationService
from app.modules.quotations.schemas import (
    QuotationCreate, QuotationUpdate, QuotationDetail, QuotationList, QuotationStatusUpdate, QuotationStatus
)

router = APIRouter(prefix="/quotations", tags=["Quotations"])

WRITE_ROLES = ["admin", "accountant", "user"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=QuotationDetail, status_code=status.HTTP_201_CREATED)
def create_quotation(
    data: QuotationCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return QuotationService(db).create_quotation(data, auth_context.company_id, auth_context.user_id)


@router.get("", response_model=QuotationList)
def list_quotations(
    status_filter: Optional[QuotationStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    model_status = QuotationStatusModel(status_filter.value) if status_filter else None
    return QuotationService(db).get_quotations(auth_context.company_id, model_status, customer_id, limit, offset)


@router.get("/{quotation_id}", response_model=QuotationDetail)
def get_quotation(
    quotation_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return QuotationService(db).get_quotation(quotation_id, auth_context.company_id)


@router.patch("/{quotation_id}", response_model=QuotationDetail)
def update_quotation(
    quotation_id: UUID,
    data: QuotationUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return QuotationService(db).update_quotation(quotation_id, data, auth_context.company_id)


@router.post("/{quotation_id}/status", response_model=QuotationDetail)
def change_quotation_status(
    quotation_id: UUID,
    data: QuotationStatusUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return QuotationService(db).change_status(
        quotation_id, QuotationStatusModel(data.status.value), auth_context.company_id, data.notes
    )


@router.post("/{quotation_id}/convert-to-invoice", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def quotation_to_invoice(
    quotation_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """
    Convertir la cotización en factura emitida (vence en 30 días).
    Descuenta el inventario de las líneas con producto.
    """
    return convert_quotation_to_invoice(db, quotation_id, auth_context.company_id, auth_context.user_id)


@router.post("/{quotation_id}/convert-to-proforma", response_model=ProformaDetail, status_code=status.HTTP_201_CREATED)
def quotation_to_proforma(
    quotation_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return convert_quotation_to_proforma(db, quotation_id, auth_context.company_id, auth_context.user_id)
