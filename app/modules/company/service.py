from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID
from datetime import datetime
import logging

from app.modules.auth.models import User, Profile, ProfileRole, ProfileStatus
from app.modules.company.models import Company, DocumentSequence, DocumentType, DEFAULT_PREFIXES
from app.modules.company.schemas import CompanyCreate, NextDocumentNumber

logger = logging.getLogger(__name__)


def _format_number(prefix: str, number: int) -> str:
    return f"{prefix or ''}{number:06d}"


def _get_or_create_sequence(db: Session, company_id: UUID, document_type: DocumentType) -> DocumentSequence:
    sequence = db.query(DocumentSequence).filter(
        DocumentSequence.company_id == company_id,
        DocumentSequence.document_type == document_type.value
    ).first()

    if not sequence:
        sequence = DocumentSequence(
            company_id=company_id,
            document_type=document_type.value,
            prefix=DEFAULT_PREFIXES[document_type],
            current_number=0
        )
        db.add(sequence)
        db.flush()
    return sequence


def generate_document_number(db: Session, company_id: UUID, document_type: DocumentType) -> str:
    """
    Generar el siguiente número de documento para la empresa.

    No hace commit: el número se confirma junto con el documento que lo usa,
    de modo que un rollback no deja huecos en la secuencia.
    """
    sequence = _get_or_create_sequence(db, company_id, document_type)
    sequence.current_number += 1
    sequence.updated_at = datetime.utcnow()
    db.flush()
    return _format_number(sequence.prefix, sequence.current_number)


def get_next_document_number(db: Session, company_id: UUID, document_type: DocumentType) -> NextDocumentNumber:
    """Consultar el siguiente número sin consumirlo."""
    sequence = db.query(DocumentSequence).filter(
        DocumentSequence.company_id == company_id,
        DocumentSequence.document_type == document_type.value
    ).first()

    prefix = sequence.prefix if sequence else DEFAULT_PREFIXES[document_type]
    next_number = (sequence.current_number if sequence else 0) + 1
    return NextDocumentNumber(
        document_type=document_type.value,
        next_number=_format_number(prefix, next_number),
        prefix=prefix,
        current_sequence=next_number
    )


def create_company(db: Session, company_data: CompanyCreate, current_user: User) -> Company:
    """
    Crear empresa y vincular el perfil del usuario que la crea como admin.
    """
    if db.query(Company).filter_by(name=company_data.name).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Company name already exists")

    try:
        company = Company(**company_data.model_dump())
        db.add(company)
        db.flush()

        profile = db.query(Profile).filter(Profile.user_id == current_user.id).first()
        if profile is None:
            profile = Profile(
                email=current_user.email,
                user_id=current_user.id,
                role=ProfileRole.ADMIN,
                status=ProfileStatus.ACTIVE
            )
            db.add(profile)
        if profile.company_id is None:
            profile.company_id = company.id
            profile.role = ProfileRole.ADMIN
            profile.status = ProfileStatus.ACTIVE

        db.commit()
        db.refresh(company)
        logger.info(f"Company {company.name} created by {current_user.email}")
        return company
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating company: {str(e)}"
        )


def get_company(db: Session, company_id: UUID) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company
