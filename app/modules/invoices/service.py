import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.common.totals import build_line_items
from app.modules.company.models import Company, DocumentType
from app.modules.company.service import generate_document_number
from app.modules.customers.service import get_active_customer
from app.modules.email.tasks import send_document_email_task
from app.modules.invoices.models import Invoice, InvoiceItem, InvoiceStatus
from app.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, InvoiceList, InvoiceOut
from app.modules.products.models import MovementType, ReferenceType
from app.modules.products.service import apply_stock_movement

logger = logging.getLogger(__name__)

OPEN_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)


def book_invoice_stock(db: Session, invoice: Invoice, user_id: Optional[UUID] = None) -> int:
    """
    Registrar salidas de inventario por las líneas con producto y cantidad positiva.
    No hace commit. Retorna el número de movimientos creados.
    """
    count = 0
    for item in invoice.items:
        if not item.product_id or not item.quantity or item.quantity <= 0:
            continue
        apply_stock_movement(
            db, invoice.company_id, item.product_id,
            MovementType.OUT, item.quantity, ReferenceType.INVOICE,
            reference_id=invoice.id,
            notes=f"Sale - Invoice {invoice.invoice_number}",
            created_by=user_id
        )
        count += 1
    invoice.stock_booked = True
    logger.info(f"Booked {count} stock movements for invoice {invoice.invoice_number}")
    return count


def revert_invoice_stock(db: Session, invoice: Invoice, user_id: Optional[UUID] = None) -> int:
    """Reingresar el inventario de una factura anulada."""
    count = 0
    for item in invoice.items:
        if not item.product_id or not item.quantity or item.quantity <= 0:
            continue
        apply_stock_movement(
            db, invoice.company_id, item.product_id,
            MovementType.IN, item.quantity, ReferenceType.INVOICE,
            reference_id=invoice.id,
            notes=f"Reversal - Invoice {invoice.invoice_number} cancelled",
            created_by=user_id
        )
        count += 1
    invoice.stock_booked = False
    return count


class InvoiceService:
    """Facturación de ventas con inventario y saldos almacenados."""

    def __init__(self, db: Session):
        self.db = db

    def create_invoice(self, invoice_data: InvoiceCreate, company_id: UUID, user_id: Optional[UUID] = None) -> Invoice:
        """Crear nueva factura"""
        customer = get_active_customer(self.db, company_id, invoice_data.customer_id)
        company = self.db.query(Company).filter(Company.id == company_id).first()

        try:
            items, (subtotal, tax_amount, total) = build_line_items(InvoiceItem, invoice_data.items)

            invoice = Invoice(
                company_id=company_id,
                customer_id=customer.id,
                created_by=user_id,
                invoice_number=generate_document_number(self.db, company_id, DocumentType.INVOICE),
                status=InvoiceStatus(invoice_data.status.value),
                invoice_date=invoice_data.invoice_date,
                due_date=invoice_data.due_date,
                lpo_number=invoice_data.lpo_number,
                notes=invoice_data.notes,
                terms_and_conditions=invoice_data.terms_and_conditions,
                currency=company.currency if company else "KES",
                affects_inventory=invoice_data.affects_inventory,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=total,
                paid_amount=Decimal("0"),
                balance_due=total,
                items=items
            )
            self.db.add(invoice)
            self.db.flush()

            # Solo las facturas emitidas afectan inventario
            if invoice.status == InvoiceStatus.SENT and invoice.affects_inventory:
                book_invoice_stock(self.db, invoice, user_id)

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice.invoice_number} created ({invoice.status.value})")
            return invoice

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating invoice: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating invoice: {str(e)}"
            )

    def get_invoices(
        self,
        company_id: UUID,
        status_filter: Optional[InvoiceStatus] = None,
        customer_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0
    ) -> InvoiceList:
        query = self.db.query(Invoice).filter(Invoice.company_id == company_id)
        if status_filter:
            query = query.filter(Invoice.status == status_filter)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if date_from:
            query = query.filter(Invoice.invoice_date >= date_from)
        if date_to:
            query = query.filter(Invoice.invoice_date <= date_to)

        total = query.count()
        invoices = query.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc()).offset(offset).limit(limit).all()
        return InvoiceList(
            invoices=[InvoiceOut.model_validate(i) for i in invoices],
            total=total,
            limit=limit,
            offset=offset
        )

    def get_invoice_by_id(self, invoice_id: UUID, company_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).options(
            selectinload(Invoice.items)
        ).filter(
            Invoice.id == invoice_id,
            Invoice.company_id == company_id
        ).first()

        if not invoice:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Invoice not found"
            )
        return invoice

    def update_invoice(self, invoice_id: UUID, data: InvoiceUpdate, company_id: UUID) -> Invoice:
        """Editar una factura en borrador (reemplaza las líneas si se envían)."""
        invoice = self.get_invoice_by_id(invoice_id, company_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only draft invoices can be edited"
            )

        try:
            changes = data.model_dump(exclude_unset=True, exclude={"items"})
            for field, value in changes.items():
                setattr(invoice, field, value)

            if data.items is not None:
                items, (subtotal, tax_amount, total) = build_line_items(InvoiceItem, data.items)
                invoice.items = items
                invoice.subtotal = subtotal
                invoice.tax_amount = tax_amount
                invoice.total_amount = total
                invoice.balance_due = total - (invoice.paid_amount or Decimal("0"))

            self.db.commit()
            self.db.refresh(invoice)
            return invoice
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating invoice {invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating invoice"
            )

    def send_invoice(self, invoice_id: UUID, company_id: UUID, user_id: Optional[UUID] = None,
                     notify_customer: bool = False) -> Invoice:
        """Emitir una factura en borrador: pasa a 'sent' y descuenta inventario."""
        invoice = self.get_invoice_by_id(invoice_id, company_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only draft invoices can be sent"
            )

        try:
            invoice.status = InvoiceStatus.SENT
            if invoice.affects_inventory and not invoice.stock_booked:
                book_invoice_stock(self.db, invoice, user_id)
            self.db.commit()
            self.db.refresh(invoice)
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error sending invoice {invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error sending invoice"
            )

        if notify_customer:
            self.email_invoice(invoice)
        return invoice

    def email_invoice(self, invoice: Invoice) -> bool:
        """Encolar el correo de la factura al cliente; False si no tiene email."""
        customer = invoice.customer
        if not customer or not customer.email:
            logger.info(f"Invoice {invoice.invoice_number} not emailed: customer has no email")
            return False

        company = self.db.query(Company).filter(Company.id == invoice.company_id).first()
        send_document_email_task.delay(
            to_email=customer.email,
            customer_name=customer.name,
            document_label="Invoice",
            document_number=invoice.invoice_number,
            total_amount=str(invoice.total_amount),
            currency=invoice.currency,
            company_name=company.name if company else "",
            due_date=invoice.due_date.isoformat() if invoice.due_date else None
        )
        return True

    def cancel_invoice(self, invoice_id: UUID, company_id: UUID, reason: Optional[str] = None,
                       user_id: Optional[UUID] = None) -> Invoice:
        """
        Anular factura con reversión de inventario.
        Facturas con pagos vigentes deben anular primero sus pagos.
        """
        invoice = self.get_invoice_by_id(invoice_id, company_id)

        if invoice.status == InvoiceStatus.CANCELLED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invoice is already cancelled"
            )
        if (invoice.paid_amount or 0) > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invoices with payments cannot be cancelled; void the payments first"
            )

        try:
            if invoice.stock_booked:
                revert_invoice_stock(self.db, invoice, user_id)

            invoice.status = InvoiceStatus.CANCELLED
            if reason:
                invoice.notes = f"{invoice.notes}\n\n[CANCELLED] {reason}" if invoice.notes else f"[CANCELLED] {reason}"

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice.invoice_number} cancelled")
            return invoice
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cancelling invoice {invoice_id}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error cancelling invoice: {str(e)}"
            )

    def mark_overdue_invoices(self, company_id: UUID, today: Optional[date] = None) -> int:
        """Marcar como vencidas las facturas emitidas con saldo y fecha de vencimiento pasada."""
        today = today or date.today()
        invoices = self.db.query(Invoice).filter(
            Invoice.company_id == company_id,
            Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.PARTIAL]),
            Invoice.due_date < today,
            Invoice.balance_due > 0
        ).all()

        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE
        self.db.commit()
        if invoices:
            logger.info(f"Marked {len(invoices)} invoices overdue for company {company_id}")
        return len(invoices)
