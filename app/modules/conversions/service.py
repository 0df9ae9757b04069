"""
Conversión de documentos: cotización → proforma → factura.

Cada conversión ocurre en una sola transacción: crea el documento destino
con el siguiente número de la secuencia, copia líneas y totales, descuenta
inventario (solo cuando el destino es una factura) y marca el origen como
convertido con el vínculo al destino. Cualquier error revierte todo.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.modules.company.models import Company, DocumentType
from app.modules.company.service import generate_document_number
from app.modules.invoices.models import Invoice, InvoiceItem, InvoiceStatus
from app.modules.invoices.service import book_invoice_stock
from app.modules.proformas.models import ProformaInvoice, ProformaItem, ProformaStatus
from app.modules.quotations.models import Quotation, QuotationStatus

logger = logging.getLogger(__name__)

QUOTATION_NOT_CONVERTIBLE = (QuotationStatus.CONVERTED, QuotationStatus.REJECTED)


def _copy_items(item_cls, source_items) -> list:
    return [
        item_cls(
            product_id=item.product_id,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount_percentage=item.discount_percentage,
            tax_percentage=item.tax_percentage,
            tax_amount=item.tax_amount,
            line_total=item.line_total,
            sort_order=item.sort_order
        )
        for item in source_items
    ]


def _get_quotation(db: Session, quotation_id: UUID, company_id: UUID) -> Quotation:
    quotation = db.query(Quotation).options(selectinload(Quotation.items)).filter(
        Quotation.id == quotation_id,
        Quotation.company_id == company_id
    ).first()
    if not quotation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quotation not found")
    if quotation.status in QUOTATION_NOT_CONVERTIBLE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot convert a {quotation.status.value} quotation"
        )
    return quotation


def _new_invoice(db: Session, company_id: UUID, source, items, user_id: Optional[UUID], notes: str) -> Invoice:
    """Factura emitida a partir de un documento de origen (sin commit)."""
    company = db.query(Company).filter(Company.id == company_id).first()
    today = date.today()
    invoice = Invoice(
        company_id=company_id,
        customer_id=source.customer_id,
        created_by=user_id,
        invoice_number=generate_document_number(db, company_id, DocumentType.INVOICE),
        status=InvoiceStatus.SENT,
        invoice_date=today,
        due_date=today + timedelta(days=settings.DEFAULT_PAYMENT_TERMS_DAYS),
        notes=notes,
        terms_and_conditions=source.terms_and_conditions,
        currency=company.currency if company else settings.DEFAULT_CURRENCY,
        affects_inventory=True,
        subtotal=source.subtotal,
        tax_amount=source.tax_amount,
        total_amount=source.total_amount,
        paid_amount=Decimal("0"),
        balance_due=source.total_amount,
        items=_copy_items(InvoiceItem, items)
    )
    db.add(invoice)
    db.flush()
    book_invoice_stock(db, invoice, user_id)
    return invoice


def convert_quotation_to_invoice(db: Session, quotation_id: UUID, company_id: UUID,
                                 user_id: Optional[UUID] = None) -> Invoice:
    quotation = _get_quotation(db, quotation_id, company_id)

    try:
        invoice = _new_invoice(
            db, company_id, quotation, quotation.items, user_id,
            notes=f"Converted from quotation {quotation.quotation_number}"
        )
        invoice.quotation_id = quotation.id

        quotation.status = QuotationStatus.CONVERTED
        quotation.converted_document_type = "invoice"
        quotation.converted_document_id = invoice.id

        db.commit()
        db.refresh(invoice)
        logger.info(f"Quotation {quotation.quotation_number} converted to invoice {invoice.invoice_number}")
        return invoice
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error converting quotation {quotation_id} to invoice: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error converting quotation to invoice: {str(e)}"
        )


def convert_quotation_to_proforma(db: Session, quotation_id: UUID, company_id: UUID,
                                  user_id: Optional[UUID] = None) -> ProformaInvoice:
    quotation = _get_quotation(db, quotation_id, company_id)

    try:
        today = date.today()
        proforma = ProformaInvoice(
            company_id=company_id,
            customer_id=quotation.customer_id,
            created_by=user_id,
            quotation_id=quotation.id,
            proforma_number=generate_document_number(db, company_id, DocumentType.PROFORMA),
            proforma_date=today,
            valid_until=quotation.valid_until or today + timedelta(days=settings.DEFAULT_PAYMENT_TERMS_DAYS),
            status=ProformaStatus.DRAFT,
            notes=f"Converted from quotation {quotation.quotation_number}",
            terms_and_conditions=quotation.terms_and_conditions,
            subtotal=quotation.subtotal,
            tax_amount=quotation.tax_amount,
            total_amount=quotation.total_amount,
            items=_copy_items(ProformaItem, quotation.items)
        )
        db.add(proforma)
        db.flush()

        quotation.status = QuotationStatus.CONVERTED
        quotation.converted_document_type = "proforma"
        quotation.converted_document_id = proforma.id

        db.commit()
        db.refresh(proforma)
        logger.info(f"Quotation {quotation.quotation_number} converted to proforma {proforma.proforma_number}")
        return proforma
    except Exception as e:
        db.rollback()
        logger.error(f"Error converting quotation {quotation_id} to proforma: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error converting quotation to proforma: {str(e)}"
        )


def convert_proforma_to_invoice(db: Session, proforma_id: UUID, company_id: UUID,
                                user_id: Optional[UUID] = None) -> Invoice:
    proforma = db.query(ProformaInvoice).options(selectinload(ProformaInvoice.items)).filter(
        ProformaInvoice.id == proforma_id,
        ProformaInvoice.company_id == company_id
    ).first()
    if not proforma:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proforma invoice not found")
    if proforma.status == ProformaStatus.CONVERTED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot convert a converted proforma invoice"
        )

    try:
        invoice = _new_invoice(
            db, company_id, proforma, proforma.items, user_id,
            notes=f"Converted from proforma {proforma.proforma_number}"
        )
        invoice.proforma_id = proforma.id
        invoice.quotation_id = proforma.quotation_id

        proforma.status = ProformaStatus.CONVERTED
        proforma.converted_invoice_id = invoice.id

        db.commit()
        db.refresh(invoice)
        logger.info(f"Proforma {proforma.proforma_number} converted to invoice {invoice.invoice_number}")
        return invoice
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error converting proforma {proforma_id} to invoice: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error converting proforma to invoice: {str(e)}"
        )
