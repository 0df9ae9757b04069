from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.service import AuthService
from app.modules.auth.dependencies import get_current_user, get_auth_context
from app.modules.auth.models import User
from app.modules.auth.schemas import (
    UserCreate, UserLogin, UserOut, TokenResponse,
    PasswordResetRequest, PasswordResetConfirm, AuthContext
)

auth_router = APIRouter()

@auth_router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Registrar nuevo usuario. El perfil queda pendiente hasta crear o unirse a una empresa.
    """
    auth_service = AuthService(db)
    return auth_service.create_user(user_data)

@auth_router.post("/login", response_model=TokenResponse)
async def login(login_data: UserLogin, db: Session = Depends(get_db)):
    auth_service = AuthService(db)
    return auth_service.login(login_data.email, login_data.password)

@auth_router.get("/me", response_model=UserOut)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Obtener información del usuario actual.
    """
    return UserOut.model_validate(current_user)

@auth_router.get("/context", response_model=AuthContext)
async def get_auth_context_info(auth_context: AuthContext = Depends(get_auth_context)):
    return auth_context

@auth_router.post("/request-password-reset", response_model=dict)
async def request_password_reset(
    request_data: PasswordResetRequest,
    db: Session = Depends(get_db)
):
    """
    Solicitar restablecimiento de contraseña.
    """
    auth_service = AuthService(db)
    auth_service.request_password_reset(request_data.email)

    return {
        "message": "If the email exists, a reset link will be sent"
    }

@auth_router.post("/reset-password", response_model=dict)
async def reset_password(
    reset_data: PasswordResetConfirm,
    db: Session = Depends(get_db)
):
    """
    Restablecer contraseña con token.
    """
    auth_service = AuthService(db)
    user = auth_service.reset_password(reset_data.token, reset_data.new_password)

    return {
        "message": "Password reset successfully",
        "user_id": str(user.id)
    }
