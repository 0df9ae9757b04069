import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.common.totals import build_line_items
from app.modules.company.models import DocumentType
from app.modules.company.service import generate_document_number
from app.modules.customers.service import get_active_customer
from app.modules.quotations.models import Quotation, QuotationItem, QuotationStatus
from app.modules.quotations.schemas import QuotationCreate, QuotationUpdate, QuotationList, QuotationOut

logger = logging.getLogger(__name__)


def append_status_note(existing: Optional[str], new_status: str, note: Optional[str]) -> Optional[str]:
    """Agregar al historial de notas una línea con el cambio de estado."""
    if not note:
        return existing
    line = f"[{datetime.now().strftime('%Y-%m-%d %H:%M')}] Status changed to {new_status}: {note}"
    return f"{existing}\n{line}" if existing else line


class QuotationService:

    def __init__(self, db: Session):
        self.db = db

    def create_quotation(self, data: QuotationCreate, company_id: UUID, user_id: Optional[UUID] = None) -> Quotation:
        customer = get_active_customer(self.db, company_id, data.customer_id)

        try:
            items, (subtotal, tax_amount, total) = build_line_items(QuotationItem, data.items)
            quotation = Quotation(
                company_id=company_id,
                customer_id=customer.id,
                created_by=user_id,
                quotation_number=generate_document_number(self.db, company_id, DocumentType.QUOTATION),
                quotation_date=data.quotation_date,
                valid_until=data.valid_until,
                status=QuotationStatus.DRAFT,
                notes=data.notes,
                terms_and_conditions=data.terms_and_conditions,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=total,
                items=items
            )
            self.db.add(quotation)
            self.db.commit()
            self.db.refresh(quotation)
            logger.info(f"Quotation {quotation.quotation_number} created")
            return quotation
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating quotation: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating quotation: {str(e)}"
            )

    def get_quotations(
        self,
        company_id: UUID,
        status_filter: Optional[QuotationStatus] = None,
        customer_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0
    ) -> QuotationList:
        query = self.db.query(Quotation).filter(Quotation.company_id == company_id)
        if status_filter:
            query = query.filter(Quotation.status == status_filter)
        if customer_id:
            query = query.filter(Quotation.customer_id == customer_id)

        total = query.count()
        quotations = query.order_by(Quotation.quotation_date.desc(), Quotation.created_at.desc()).offset(offset).limit(limit).all()
        return QuotationList(
            quotations=[QuotationOut.model_validate(q) for q in quotations],
            total=total,
            limit=limit,
            offset=offset
        )

    def get_quotation(self, quotation_id: UUID, company_id: UUID) -> Quotation:
        quotation = self.db.query(Quotation).options(
            selectinload(Quotation.items)
        ).filter(
            Quotation.id == quotation_id,
            Quotation.company_id == company_id
        ).first()
        if not quotation:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quotation not found")
        return quotation

    def update_quotation(self, quotation_id: UUID, data: QuotationUpdate, company_id: UUID) -> Quotation:
        quotation = self.get_quotation(quotation_id, company_id)
        if quotation.status not in (QuotationStatus.DRAFT, QuotationStatus.SENT):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot edit a {quotation.status.value} quotation"
            )

        try:
            for field, value in data.model_dump(exclude_unset=True, exclude={"items"}).items():
                setattr(quotation, field, value)
            if data.items is not None:
                items, (subtotal, tax_amount, total) = build_line_items(QuotationItem, data.items)
                quotation.items = items
                quotation.subtotal = subtotal
                quotation.tax_amount = tax_amount
                quotation.total_amount = total
            self.db.commit()
            self.db.refresh(quotation)
            return quotation
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating quotation {quotation_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating quotation"
            )

    def change_status(self, quotation_id: UUID, new_status: QuotationStatus, company_id: UUID,
                      note: Optional[str] = None) -> Quotation:
        """
        Cambiar el estado de la cotización.

        'converted' solo lo asigna la conversión, y una cotización convertida
        ya no cambia de estado.
        """
        quotation = self.get_quotation(quotation_id, company_id)
        if quotation.status == QuotationStatus.CONVERTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Converted quotations cannot change status"
            )
        if new_status == QuotationStatus.CONVERTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Use a conversion endpoint to convert a quotation"
            )

        quotation.status = new_status
        quotation.notes = append_status_note(quotation.notes, new_status.value, note)
        self.db.commit()
        self.db.refresh(quotation)
        logger.info(f"Quotation {quotation.quotation_number} status changed to {new_status.value}")
        return quotation
