from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.reconciliation import service
from app.modules.reconciliation.schemas import (
    InvoiceReconciliation, ReconciliationSummary, DiscrepancyCheck, PaymentAuditEntry
)

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])

RECONCILE_ROLES = ["admin", "accountant"]


@router.post("/invoices", response_model=ReconciliationSummary)
def reconcile_all(
    fix: bool = Query(False, description="Persist corrected balances"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(RECONCILE_ROLES))
):
    """
    Conciliar todas las facturas de la empresa.

    Los errores por factura se reportan en `errors` sin detener el proceso.
    """
    return service.reconcile_all_invoice_balances(db, auth_context.company_id, fix)


@router.post("/invoices/{invoice_id}", response_model=InvoiceReconciliation)
def reconcile_invoice(
    invoice_id: UUID,
    apply: bool = Query(False, description="Persist the corrected balance"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(RECONCILE_ROLES))
):
    return service.reconcile_invoice_balance(db, invoice_id, auth_context.company_id, apply)


@router.get("/invoices/{invoice_id}/discrepancy", response_model=DiscrepancyCheck)
def check_discrepancy(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(RECONCILE_ROLES))
):
    return DiscrepancyCheck(
        invoice_id=invoice_id,
        has_discrepancy=service.has_balance_discrepancy(db, invoice_id, auth_context.company_id)
    )


@router.get("/invoices/{invoice_id}/audit-trail", response_model=List[PaymentAuditEntry])
def payment_audit_trail(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return service.get_payment_audit_trail(db, invoice_id, auth_context.company_id)
