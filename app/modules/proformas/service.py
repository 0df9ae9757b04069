import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.common.totals import build_line_items
from app.modules.company.models import DocumentType
from app.modules.company.service import generate_document_number
from app.modules.customers.service import get_active_customer
from app.modules.proformas.models import ProformaInvoice, ProformaItem, ProformaStatus
from app.modules.proformas.schemas import ProformaCreate, ProformaList, ProformaOut
from app.modules.quotations.service import append_status_note

logger = logging.getLogger(__name__)


class ProformaService:

    def __init__(self, db: Session):
        self.db = db

    def create_proforma(self, data: ProformaCreate, company_id: UUID, user_id: Optional[UUID] = None) -> ProformaInvoice:
        customer = get_active_customer(self.db, company_id, data.customer_id)

        try:
            items, (subtotal, tax_amount, total) = build_line_items(ProformaItem, data.items)
            proforma = ProformaInvoice(
                company_id=company_id,
                customer_id=customer.id,
                created_by=user_id,
                proforma_number=generate_document_number(self.db, company_id, DocumentType.PROFORMA),
                proforma_date=data.proforma_date,
                valid_until=data.valid_until,
                status=ProformaStatus.DRAFT,
                notes=data.notes,
                terms_and_conditions=data.terms_and_conditions,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=total,
                items=items
            )
            self.db.add(proforma)
            self.db.commit()
            self.db.refresh(proforma)
            logger.info(f"Proforma {proforma.proforma_number} created")
            return proforma
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating proforma: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating proforma: {str(e)}"
            )

    def get_proformas(
        self,
        company_id: UUID,
        status_filter: Optional[ProformaStatus] = None,
        customer_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0
    ) -> ProformaList:
        query = self.db.query(ProformaInvoice).filter(ProformaInvoice.company_id == company_id)
        if status_filter:
            query = query.filter(ProformaInvoice.status == status_filter)
        if customer_id:
            query = query.filter(ProformaInvoice.customer_id == customer_id)

        total = query.count()
        proformas = query.order_by(ProformaInvoice.proforma_date.desc(), ProformaInvoice.created_at.desc()).offset(offset).limit(limit).all()
        return ProformaList(
            proformas=[ProformaOut.model_validate(p) for p in proformas],
            total=total,
            limit=limit,
            offset=offset
        )

    def get_proforma(self, proforma_id: UUID, company_id: UUID) -> ProformaInvoice:
        proforma = self.db.query(ProformaInvoice).options(
            selectinload(ProformaInvoice.items)
        ).filter(
            ProformaInvoice.id == proforma_id,
            ProformaInvoice.company_id == company_id
        ).first()
        if not proforma:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proforma invoice not found")
        return proforma

    def change_status(self, proforma_id: UUID, new_status: ProformaStatus, company_id: UUID,
                      note: Optional[str] = None) -> ProformaInvoice:
        proforma = self.get_proforma(proforma_id, company_id)
        if proforma.status == ProformaStatus.CONVERTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Converted proforma invoices cannot change status"
            )
        if new_status == ProformaStatus.CONVERTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Use the conversion endpoint to convert a proforma invoice"
            )

        proforma.status = new_status
        proforma.notes = append_status_note(proforma.notes, new_status.value, note)
        self.db.commit()
        self.db.refresh(proforma)
        logger.info(f"Proforma {proforma.proforma_number} status changed to {new_status.value}")
        return proforma
