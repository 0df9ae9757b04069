"""
Pagos de clientes con asignación a facturas.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.common.totals import money
from app.modules.audit.service import record_audit_event
from app.modules.company.models import DocumentType
from app.modules.company.service import generate_document_number
from app.modules.invoices.balances import refresh_invoice_balance
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.payments.models import Payment, PaymentAllocation, PaymentMethod
from app.modules.payments.schemas import PaymentCreate, PaymentAllocationResult, PaymentList, PaymentOut

logger = logging.getLogger(__name__)


class PaymentService:

    def __init__(self, db: Session):
        self.db = db

    def record_payment_with_allocation(
        self,
        company_id: UUID,
        data: PaymentCreate,
        user_id: Optional[UUID] = None,
        commit: bool = True
    ) -> PaymentAllocationResult:
        """
        Registrar un pago y asignarlo completo a una factura, en una transacción.

        Inserta el pago (con número generado si no se envía), su asignación,
        y actualiza paid_amount / balance_due / status de la factura. Los
        sobrepagos se aceptan y dejan balance_due negativo.
        """
        invoice = self.db.query(Invoice).filter(
            Invoice.id == data.invoice_id,
            Invoice.company_id == company_id
        ).first()
        if not invoice:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Invoice not found"
            )

        if invoice.status in (InvoiceStatus.CANCELLED, InvoiceStatus.DRAFT):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot record payments on a {invoice.status.value} invoice"
            )

        amount = money(data.amount)
        if amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payment amount must be greater than zero"
            )

        try:
            payment = Payment(
                company_id=company_id,
                customer_id=data.customer_id or invoice.customer_id,
                payment_number=data.payment_number or generate_document_number(self.db, company_id, DocumentType.PAYMENT),
                payment_date=data.payment_date,
                amount=amount,
                payment_method=PaymentMethod(data.payment_method.value),
                reference_number=data.reference_number,
                notes=data.notes,
                created_by=user_id
            )
            self.db.add(payment)
            self.db.flush()

            self.db.add(PaymentAllocation(
                payment_id=payment.id,
                invoice_id=invoice.id,
                amount_allocated=amount
            ))
            self.db.flush()

            refresh_invoice_balance(self.db, invoice)
            if invoice.balance_due < 0:
                logger.warning(f"Invoice {invoice.invoice_number} overpaid by {-invoice.balance_due}")

            result = PaymentAllocationResult(
                payment_id=payment.id,
                payment_number=payment.payment_number,
                amount_allocated=amount,
                invoice_id=invoice.id,
                invoice_balance=invoice.balance_due,
                invoice_status=invoice.status.value
            )
            if commit:
                self.db.commit()
            logger.info(f"Payment {payment.payment_number} of {amount} allocated to {invoice.invoice_number}")
            return result

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error recording payment for invoice {data.invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error recording payment: {str(e)}"
            )

    def get_payment(self, payment_id: UUID, company_id: UUID) -> Payment:
        payment = self.db.query(Payment).options(
            selectinload(Payment.allocations)
        ).filter(
            Payment.id == payment_id,
            Payment.company_id == company_id
        ).first()
        if not payment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
        return payment

    def get_payments(
        self,
        company_id: UUID,
        customer_id: Optional[UUID] = None,
        invoice_id: Optional[UUID] = None,
        include_voided: bool = True,
        limit: int = 100,
        offset: int = 0
    ) -> PaymentList:
        query = self.db.query(Payment).options(selectinload(Payment.allocations)).filter(
            Payment.company_id == company_id
        )
        if customer_id:
            query = query.filter(Payment.customer_id == customer_id)
        if invoice_id:
            query = query.join(PaymentAllocation).filter(PaymentAllocation.invoice_id == invoice_id)
        if not include_voided:
            query = query.filter(Payment.is_voided == False)

        total = query.count()
        payments = query.order_by(Payment.payment_date.desc(), Payment.created_at.desc()).offset(offset).limit(limit).all()
        return PaymentList(
            payments=[PaymentOut.model_validate(p) for p in payments],
            total=total,
            limit=limit,
            offset=offset
        )

    def void_payment(self, payment_id: UUID, company_id: UUID, reason: str,
                     user_id: Optional[UUID] = None) -> Payment:
        """
        Anular un pago y revertir su efecto en los saldos de las facturas asignadas.
        """
        payment = self.get_payment(payment_id, company_id)
        if payment.is_voided:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payment is already voided"
            )

        try:
            payment.is_voided = True
            payment.voided_at = datetime.now(timezone.utc)
            payment.void_reason = reason
            self.db.flush()

            invoice_ids = {a.invoice_id for a in payment.allocations}
            for invoice in self.db.query(Invoice).filter(Invoice.id.in_(invoice_ids)).all():
                refresh_invoice_balance(self.db, invoice)

            record_audit_event(
                self.db,
                action="payment_voided",
                entity_type="payment",
                entity_id=payment.id,
                actor_id=user_id,
                company_id=company_id,
                details={"reason": reason, "amount": str(payment.amount)}
            )
            self.db.commit()
            self.db.refresh(payment)
            logger.info(f"Payment {payment.payment_number} voided: {reason}")
            return payment
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error voiding payment {payment_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error voiding payment"
            )
