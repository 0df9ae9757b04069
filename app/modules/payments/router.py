from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies, get_current_user
from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext
from app.modules.payments.diagnostics import run_payment_allocation_diagnostic
from app.modules.payments.service import PaymentService
from app.modules.payments.schemas import (
    PaymentCreate, PaymentOut, PaymentList, PaymentVoid, PaymentAllocationResult, DiagnosticResult
)

router = APIRouter(prefix="/payments", tags=["Payments"])

WRITE_ROLES = ["admin", "accountant", "user"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=PaymentAllocationResult, status_code=status.HTTP_201_CREATED)
def record_payment(
    data: PaymentCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """
    Registrar un pago y asignarlo a una factura.

    Devuelve el saldo y estado resultantes de la factura.
    """
    return PaymentService(db).record_payment_with_allocation(auth_context.company_id, data, auth_context.user_id)


@router.get("", response_model=PaymentList)
def list_payments(
    customer_id: Optional[UUID] = Query(None),
    invoice_id: Optional[UUID] = Query(None),
    include_voided: bool = Query(True),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return PaymentService(db).get_payments(
        auth_context.company_id, customer_id, invoice_id, include_voided, limit, offset
    )


@router.get("/diagnostic", response_model=DiagnosticResult)
def payment_diagnostic(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Verificar que la asignación de pagos esté operativa para el usuario actual."""
    return run_payment_allocation_diagnostic(db, current_user)


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return PaymentService(db).get_payment(payment_id, auth_context.company_id)


@router.post("/{payment_id}/void", response_model=PaymentOut)
def void_payment(
    payment_id: UUID,
    data: PaymentVoid,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["admin", "accountant"]))
):
    return PaymentService(db).void_payment(payment_id, auth_context.company_id, data.reason, auth_context.user_id)
