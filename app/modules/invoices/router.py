from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.invoices.models import InvoiceStatus as InvoiceStatusModel
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceOut, InvoiceDetail, InvoiceList, InvoiceUpdate, InvoiceCancel, InvoiceStatus
)

# Router principal del módulo de facturas
router = APIRouter(prefix="/invoices", tags=["Invoices"])

WRITE_ROLES = ["admin", "accountant", "user"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """
    Crear una nueva factura de venta.

    Si se crea como 'sent' y afecta inventario, se descuenta el stock.
    """
    service = InvoiceService(db)
    return service.create_invoice(invoice_data, auth_context.company_id, auth_context.user_id)


@router.get("", response_model=InvoiceList)
def list_invoices(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    start_date: Optional[date] = Query(None, description="Start date (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="End date (YYYY-MM-DD)"),
    customer_id: Optional[UUID] = Query(None),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    service = InvoiceService(db)
    model_status = InvoiceStatusModel(status_filter.value) if status_filter else None
    return service.get_invoices(auth_context.company_id, model_status, customer_id, start_date, end_date, limit, offset)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return InvoiceService(db).get_invoice_by_id(invoice_id, auth_context.company_id)


@router.patch("/{invoice_id}", response_model=InvoiceDetail)
def update_invoice(
    invoice_id: UUID,
    data: InvoiceUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """Editar una factura en borrador."""
    return InvoiceService(db).update_invoice(invoice_id, data, auth_context.company_id)


@router.post("/{invoice_id}/send", response_model=InvoiceOut)
def send_invoice(
    invoice_id: UUID,
    notify_customer: bool = Query(False, description="Email the invoice to the customer"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return InvoiceService(db).send_invoice(invoice_id, auth_context.company_id, auth_context.user_id, notify_customer)


@router.post("/{invoice_id}/cancel", response_model=InvoiceOut)
def cancel_invoice(
    invoice_id: UUID,
    data: InvoiceCancel,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["admin", "accountant"]))
):
    """
    Anular factura. Revierte el inventario descontado.
    """
    return InvoiceService(db).cancel_invoice(invoice_id, auth_context.company_id, data.reason, auth_context.user_id)


@router.post("/mark-overdue", response_model=dict)
def mark_overdue(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["admin", "accountant"]))
):
    updated = InvoiceService(db).mark_overdue_invoices(auth_context.company_id)
    return {"updated": updated}
