"""
Órdenes de compra locales (LPO) a proveedores.
"""
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.common.totals import calculate_line, calculate_totals
from app.modules.company.models import DocumentType
from app.modules.company.service import generate_document_number
from app.modules.customers.service import get_active_customer
from app.modules.lpos.models import LPO, LPOItem, LPOStatus
from app.modules.lpos.schemas import LPOCreate, LPOList, LPOOut
from app.modules.lpos.validation import validate_lpo, validate_lpo_edit, LPOValidationResult
from app.modules.products.models import MovementType, ReferenceType
from app.modules.products.service import apply_stock_movement

logger = logging.getLogger(__name__)

# Transiciones manuales permitidas; 'received' solo vía receive_lpo
ALLOWED_TRANSITIONS = {
    LPOStatus.DRAFT: {LPOStatus.SENT, LPOStatus.APPROVED, LPOStatus.CANCELLED},
    LPOStatus.SENT: {LPOStatus.APPROVED, LPOStatus.CANCELLED, LPOStatus.DRAFT},
    LPOStatus.APPROVED: {LPOStatus.CANCELLED, LPOStatus.SENT},
    LPOStatus.RECEIVED: set(),
    LPOStatus.CANCELLED: set(),
}


def _raise_if_invalid(result: LPOValidationResult):
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(result.errors)
        )


def _build_items(items):
    built = []
    lines = []
    for index, item in enumerate(items):
        line = calculate_line(item.quantity, item.unit_price, 0, item.tax_rate)
        lines.append(line)
        built.append(LPOItem(
            product_id=item.product_id,
            description=item.description.strip(),
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_rate=item.tax_rate or 0,
            tax_amount=line[1],
            line_total=line[2],
            sort_order=index
        ))
    return built, calculate_totals(lines)


class LPOService:

    def __init__(self, db: Session):
        self.db = db

    def create_lpo(self, data: LPOCreate, company_id: UUID, user_id: Optional[UUID] = None) -> LPO:
        _raise_if_invalid(validate_lpo(data))
        supplier = get_active_customer(self.db, company_id, data.supplier_id, supplier=True)

        try:
            items, (subtotal, tax_amount, total) = _build_items(data.items)
            lpo = LPO(
                company_id=company_id,
                supplier_id=supplier.id,
                created_by=user_id,
                lpo_number=generate_document_number(self.db, company_id, DocumentType.LPO),
                lpo_date=data.lpo_date,
                delivery_date=data.delivery_date,
                status=LPOStatus.DRAFT,
                delivery_address=data.delivery_address,
                contact_person=data.contact_person,
                contact_phone=data.contact_phone,
                notes=data.notes,
                terms_and_conditions=data.terms_and_conditions,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=total,
                items=items
            )
            self.db.add(lpo)
            self.db.commit()
            self.db.refresh(lpo)
            logger.info(f"LPO {lpo.lpo_number} created for supplier {supplier.name}")
            return lpo
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating LPO: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating LPO: {str(e)}"
            )

    def get_lpos(
        self,
        company_id: UUID,
        status_filter: Optional[LPOStatus] = None,
        supplier_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0
    ) -> LPOList:
        query = self.db.query(LPO).filter(LPO.company_id == company_id)
        if status_filter:
            query = query.filter(LPO.status == status_filter)
        if supplier_id:
            query = query.filter(LPO.supplier_id == supplier_id)

        total = query.count()
        lpos = query.order_by(LPO.lpo_date.desc(), LPO.created_at.desc()).offset(offset).limit(limit).all()
        return LPOList(lpos=[LPOOut.model_validate(l) for l in lpos], total=total, limit=limit, offset=offset)

    def get_lpo(self, lpo_id: UUID, company_id: UUID) -> LPO:
        lpo = self.db.query(LPO).options(selectinload(LPO.items)).filter(
            LPO.id == lpo_id,
            LPO.company_id == company_id
        ).first()
        if not lpo:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="LPO not found")
        return lpo

    def update_lpo(self, lpo_id: UUID, data: LPOCreate, company_id: UUID) -> LPO:
        """Reemplazar encabezado e ítems de una LPO que aún no fue recibida ni anulada."""
        lpo = self.get_lpo(lpo_id, company_id)
        _raise_if_invalid(validate_lpo_edit(data, lpo.status))
        supplier = get_active_customer(self.db, company_id, data.supplier_id, supplier=True)

        try:
            items, (subtotal, tax_amount, total) = _build_items(data.items)
            lpo.supplier_id = supplier.id
            lpo.lpo_date = data.lpo_date
            lpo.delivery_date = data.delivery_date
            lpo.delivery_address = data.delivery_address
            lpo.contact_person = data.contact_person
            lpo.contact_phone = data.contact_phone
            lpo.notes = data.notes
            lpo.terms_and_conditions = data.terms_and_conditions
            lpo.items = items
            lpo.subtotal = subtotal
            lpo.tax_amount = tax_amount
            lpo.total_amount = total
            self.db.commit()
            self.db.refresh(lpo)
            return lpo
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating LPO {lpo_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating LPO"
            )

    def change_status(self, lpo_id: UUID, new_status: LPOStatus, company_id: UUID) -> LPO:
        lpo = self.get_lpo(lpo_id, company_id)
        if new_status not in ALLOWED_TRANSITIONS[lpo.status]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot change LPO status from {lpo.status.value} to {new_status.value}"
            )
        lpo.status = new_status
        self.db.commit()
        self.db.refresh(lpo)
        logger.info(f"LPO {lpo.lpo_number} status changed to {new_status.value}")
        return lpo

    def receive_lpo(self, lpo_id: UUID, company_id: UUID, user_id: Optional[UUID] = None) -> LPO:
        """
        Registrar la recepción de la mercancía: un movimiento IN por cada ítem
        con producto, al costo de la orden.
        """
        lpo = self.get_lpo(lpo_id, company_id)
        if lpo.status in (LPOStatus.RECEIVED, LPOStatus.CANCELLED):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot receive a {lpo.status.value} LPO"
            )

        try:
            for item in lpo.items:
                if not item.product_id or item.quantity <= 0:
                    continue
                apply_stock_movement(
                    self.db, company_id, item.product_id,
                    MovementType.IN, item.quantity, ReferenceType.LPO,
                    reference_id=lpo.id,
                    cost_per_unit=Decimal(str(item.unit_price)),
                    notes=f"Purchase - LPO {lpo.lpo_number}",
                    created_by=user_id
                )
            lpo.status = LPOStatus.RECEIVED
            self.db.commit()
            self.db.refresh(lpo)
            logger.info(f"LPO {lpo.lpo_number} received")
            return lpo
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error receiving LPO {lpo_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error receiving LPO"
            )
