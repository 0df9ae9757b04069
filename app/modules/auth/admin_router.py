"""
Endpoints administrativos de identidad: usuarios, perfiles y
restablecimiento de contraseña iniciado por un admin.
"""
import logging
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import get_auth_context, require_admin
from app.modules.auth.schemas import (
    AdminPasswordResetRequest, AdminActionResponse, AuthContext,
    ProfileOut, ProfileUpdate, UserPage
)
from app.modules.auth.service import AuthService

logger = logging.getLogger(__name__)

admin_router = APIRouter()


@admin_router.post("/reset-password", response_model=AdminActionResponse)
def admin_reset_password(
    payload: AdminPasswordResetRequest,
    auth_context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """
    Iniciar el restablecimiento de contraseña de otro usuario de la empresa.
    `admin_id` debe ser el perfil autenticado.
    Los errores se devuelven como {success: false, error} con su código HTTP.
    """
    try:
        AuthService(db).admin_reset_password(
            payload.email, payload.user_id, payload.admin_id, auth_context.profile_id
        )
    except HTTPException as e:
        return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.detail})
    except Exception as e:
        logger.error(f"Unexpected error in admin password reset: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    return AdminActionResponse(success=True)


@admin_router.api_route("/reset-password", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def admin_reset_password_method_not_allowed():
    return JSONResponse(status_code=405, content={"success": False, "error": "Method not allowed"})


@admin_router.get("/users", response_model=UserPage)
def list_users(
    page: int = Query(1, ge=1),
    per_page: int = Query(None, ge=1, le=1000),
    auth_context: AuthContext = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return AuthService(db).list_users(page, per_page)


@admin_router.patch("/profiles/{profile_id}", response_model=ProfileOut)
def update_profile(
    profile_id: UUID,
    data: ProfileUpdate,
    auth_context: AuthContext = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Actualizar rol, estado o datos de contacto de un perfil de la empresa."""
    return AuthService(db).update_profile(
        profile_id, data,
        admin_profile_id=auth_context.profile_id,
        company_id=auth_context.company_id
    )
