"""
Notas crédito: emisión, aplicación a facturas y anulación.
"""
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.common.totals import build_line_items, money
from app.modules.audit.service import record_audit_event
from app.modules.company.models import DocumentType
from app.modules.company.service import generate_document_number
from app.modules.credit_notes.models import CreditNote, CreditNoteItem, CreditNoteAllocation, CreditNoteStatus
from app.modules.credit_notes.schemas import CreditNoteCreate, CreditNoteList, CreditNoteOut
from app.modules.customers.service import get_active_customer
from app.modules.invoices.balances import refresh_invoice_balance
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.products.models import MovementType, ReferenceType
from app.modules.products.service import apply_stock_movement

logger = logging.getLogger(__name__)


def _book_returned_stock(db: Session, credit_note: CreditNote, movement_type: MovementType,
                         user_id: Optional[UUID] = None) -> int:
    """Movimientos de inventario por devolución (IN) o por su reversión (OUT)."""
    label = "Return" if movement_type == MovementType.IN else "Reversal"
    count = 0
    for item in credit_note.items:
        if not item.product_id or not item.quantity or item.quantity <= 0:
            continue
        apply_stock_movement(
            db, credit_note.company_id, item.product_id,
            movement_type, item.quantity, ReferenceType.CREDIT_NOTE,
            reference_id=credit_note.id,
            notes=f"{label} - Credit note {credit_note.credit_note_number}",
            created_by=user_id
        )
        count += 1
    return count


class CreditNoteService:

    def __init__(self, db: Session):
        self.db = db

    def _get_invoice(self, invoice_id: UUID, company_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.company_id == company_id
        ).first()
        if not invoice:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
        return invoice

    def create_credit_note(self, data: CreditNoteCreate, company_id: UUID,
                           user_id: Optional[UUID] = None) -> CreditNote:
        """
        Crear nota crédito con sus líneas.

        Si se emite directamente y afecta inventario, las líneas con producto
        reingresan al stock.
        """
        customer = get_active_customer(self.db, company_id, data.customer_id)
        if data.invoice_id:
            invoice = self._get_invoice(data.invoice_id, company_id)
            if invoice.customer_id != customer.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invoice belongs to a different customer"
                )

        try:
            items, (subtotal, tax_amount, total) = build_line_items(CreditNoteItem, data.items)
            credit_note = CreditNote(
                company_id=company_id,
                customer_id=customer.id,
                invoice_id=data.invoice_id,
                created_by=user_id,
                credit_note_number=generate_document_number(self.db, company_id, DocumentType.CREDIT_NOTE),
                credit_note_date=data.credit_note_date,
                status=CreditNoteStatus(data.status.value),
                reason=data.reason,
                notes=data.notes,
                affects_inventory=data.affects_inventory,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=total,
                applied_amount=Decimal("0"),
                balance=total,
                items=items
            )
            self.db.add(credit_note)
            self.db.flush()

            if credit_note.status == CreditNoteStatus.ISSUED and credit_note.affects_inventory:
                _book_returned_stock(self.db, credit_note, MovementType.IN, user_id)

            self.db.commit()
            self.db.refresh(credit_note)
            logger.info(f"Credit note {credit_note.credit_note_number} created ({credit_note.status.value})")
            return credit_note
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating credit note: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating credit note: {str(e)}"
            )

    def get_credit_note(self, credit_note_id: UUID, company_id: UUID) -> CreditNote:
        credit_note = self.db.query(CreditNote).options(
            selectinload(CreditNote.items),
            selectinload(CreditNote.allocations)
        ).filter(
            CreditNote.id == credit_note_id,
            CreditNote.company_id == company_id
        ).first()
        if not credit_note:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Credit note not found")
        return credit_note

    def get_credit_notes(
        self,
        company_id: UUID,
        customer_id: Optional[UUID] = None,
        status_filter: Optional[CreditNoteStatus] = None,
        limit: int = 100,
        offset: int = 0
    ) -> CreditNoteList:
        query = self.db.query(CreditNote).filter(CreditNote.company_id == company_id)
        if customer_id:
            query = query.filter(CreditNote.customer_id == customer_id)
        if status_filter:
            query = query.filter(CreditNote.status == status_filter)

        total = query.count()
        credit_notes = query.order_by(CreditNote.credit_note_date.desc(), CreditNote.created_at.desc()).offset(offset).limit(limit).all()
        return CreditNoteList(
            credit_notes=[CreditNoteOut.model_validate(c) for c in credit_notes],
            total=total,
            limit=limit,
            offset=offset
        )

    def issue_credit_note(self, credit_note_id: UUID, company_id: UUID,
                          user_id: Optional[UUID] = None) -> CreditNote:
        credit_note = self.get_credit_note(credit_note_id, company_id)
        if credit_note.status != CreditNoteStatus.DRAFT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only draft credit notes can be issued"
            )
        try:
            credit_note.status = CreditNoteStatus.ISSUED
            if credit_note.affects_inventory:
                _book_returned_stock(self.db, credit_note, MovementType.IN, user_id)
            self.db.commit()
            self.db.refresh(credit_note)
            return credit_note
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error issuing credit note {credit_note_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error issuing credit note"
            )

    def apply_credit_note_to_invoice(
        self,
        credit_note_id: UUID,
        invoice_id: UUID,
        amount: Decimal,
        company_id: UUID,
        user_id: Optional[UUID] = None
    ) -> CreditNote:
        """
        Aplicar parte del saldo de una nota crédito a una factura del mismo cliente.

        El monto no puede superar el saldo de la nota ni el saldo de la factura.
        """
        credit_note = self.get_credit_note(credit_note_id, company_id)
        invoice = self._get_invoice(invoice_id, company_id)
        amount = money(amount)

        if credit_note.status != CreditNoteStatus.ISSUED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot apply a {credit_note.status.value} credit note"
            )
        if invoice.customer_id != credit_note.customer_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invoice belongs to a different customer"
            )
        if invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot apply credit to a {invoice.status.value} invoice"
            )
        if amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Amount must be greater than zero"
            )
        if amount > money(credit_note.balance):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Amount exceeds the credit note balance ({credit_note.balance})"
            )
        if amount > money(invoice.balance_due):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Amount exceeds the invoice balance ({invoice.balance_due})"
            )

        try:
            credit_note.allocations.append(CreditNoteAllocation(
                invoice_id=invoice.id,
                allocated_amount=amount,
                created_by=user_id
            ))
            credit_note.applied_amount = money(credit_note.applied_amount) + amount
            credit_note.balance = money(credit_note.total_amount) - credit_note.applied_amount
            if credit_note.balance <= 0:
                credit_note.status = CreditNoteStatus.APPLIED
            self.db.flush()

            refresh_invoice_balance(self.db, invoice)
            self.db.commit()
            self.db.refresh(credit_note)
            logger.info(f"Credit note {credit_note.credit_note_number} applied {amount} to {invoice.invoice_number}")
            return credit_note
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error applying credit note {credit_note_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error applying credit note"
            )

    def cancel_credit_note(self, credit_note_id: UUID, company_id: UUID, reason: Optional[str] = None,
                           user_id: Optional[UUID] = None) -> CreditNote:
        """
        Anular nota crédito. Sus asignaciones dejan de contar en el saldo de las
        facturas y se revierte el reingreso de inventario.
        """
        credit_note = self.get_credit_note(credit_note_id, company_id)
        if credit_note.status == CreditNoteStatus.CANCELLED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Credit note is already cancelled"
            )

        try:
            was_issued = credit_note.status in (CreditNoteStatus.ISSUED, CreditNoteStatus.APPLIED)
            credit_note.status = CreditNoteStatus.CANCELLED
            credit_note.balance = Decimal("0")
            self.db.flush()

            invoice_ids = {a.invoice_id for a in credit_note.allocations}
            for invoice in self.db.query(Invoice).filter(Invoice.id.in_(invoice_ids)).all():
                refresh_invoice_balance(self.db, invoice)

            if was_issued and credit_note.affects_inventory:
                _book_returned_stock(self.db, credit_note, MovementType.OUT, user_id)

            record_audit_event(
                self.db,
                action="credit_note_cancelled",
                entity_type="credit_note",
                entity_id=credit_note.id,
                actor_id=user_id,
                company_id=company_id,
                details={"reason": reason, "reversed_invoices": [str(i) for i in invoice_ids]}
            )
            self.db.commit()
            self.db.refresh(credit_note)
            logger.info(f"Credit note {credit_note.credit_note_number} cancelled")
            return credit_note
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cancelling credit note {credit_note_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error cancelling credit note"
            )
