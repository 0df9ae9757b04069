from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.credit_notes.models import CreditNoteStatus as CreditNoteStatusModel
from app.modules.credit_notes.service import CreditNoteService
from app.modules.credit_notes.schemas import (
    CreditNoteCreate, CreditNoteDetail, CreditNoteList, CreditNoteApply, CreditNoteCancel, CreditNoteStatus
)

router = APIRouter(prefix="/credit-notes", tags=["Credit Notes"])

WRITE_ROLES = ["admin", "accountant"]
READ_ROLES = ["admin", "accountant", "stock_manager", "user"]


@router.post("", response_model=CreditNoteDetail, status_code=status.HTTP_201_CREATED)
def create_credit_note(
    data: CreditNoteCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return CreditNoteService(db).create_credit_note(data, auth_context.company_id, auth_context.user_id)


@router.get("", response_model=CreditNoteList)
def list_credit_notes(
    customer_id: Optional[UUID] = Query(None),
    status_filter: Optional[CreditNoteStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    model_status = CreditNoteStatusModel(status_filter.value) if status_filter else None
    return CreditNoteService(db).get_credit_notes(auth_context.company_id, customer_id, model_status, limit, offset)


@router.get("/{credit_note_id}", response_model=CreditNoteDetail)
def get_credit_note(
    credit_note_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(READ_ROLES))
):
    return CreditNoteService(db).get_credit_note(credit_note_id, auth_context.company_id)


@router.post("/{credit_note_id}/issue", response_model=CreditNoteDetail)
def issue_credit_note(
    credit_note_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return CreditNoteService(db).issue_credit_note(credit_note_id, auth_context.company_id, auth_context.user_id)


@router.post("/{credit_note_id}/apply", response_model=CreditNoteDetail)
def apply_credit_note(
    credit_note_id: UUID,
    data: CreditNoteApply,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """Aplicar saldo de la nota crédito a una factura abierta."""
    return CreditNoteService(db).apply_credit_note_to_invoice(
        credit_note_id, data.invoice_id, data.amount, auth_context.company_id, auth_context.user_id
    )


@router.post("/{credit_note_id}/cancel", response_model=CreditNoteDetail)
def cancel_credit_note(
    credit_note_id: UUID,
    data: CreditNoteCancel,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["admin"]))
):
    return CreditNoteService(db).cancel_credit_note(
        credit_note_id, auth_context.company_id, data.reason, auth_context.user_id
    )
