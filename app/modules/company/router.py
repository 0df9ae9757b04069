from fastapi import APIRouter, HTTPException, status, Depends
from app.modules.company import service
from app.modules.company.models import DocumentType
from app.modules.company.schemas import CompanyCreate, CompanyOut, NextDocumentNumber
from app.dependencies.dbDependecies import db_dependency
from app.modules.auth.dependencies import get_current_user, get_auth_context
from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext


company_router = APIRouter()

@company_router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
async def create_company(company: CompanyCreate, db: db_dependency,
                         current_user: User = Depends(get_current_user)):
    """
    Crear una empresa. El usuario que la crea queda como admin activo.
    """
    return service.create_company(db, company, current_user)

@company_router.get("/me", response_model=CompanyOut)
async def get_my_company(db: db_dependency, auth_context: AuthContext = Depends(get_auth_context)):
    if not auth_context.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No company linked to this profile")
    return service.get_company(db, auth_context.company_id)

@company_router.get("/me/next-number/{document_type}", response_model=NextDocumentNumber)
async def get_next_number(document_type: DocumentType, db: db_dependency,
                          auth_context: AuthContext = Depends(get_auth_context)):
    """Consultar el próximo número de documento sin consumirlo."""
    if not auth_context.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No company linked to this profile")
    return service.get_next_document_number(db, auth_context.company_id, document_type)
