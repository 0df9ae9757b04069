from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from enum import Enum
from app.common.validators import validate_password_strength, validate_phone_number, validate_full_name


class ProfileRole(str, Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    STOCK_MANAGER = "stock_manager"
    USER = "user"


class ProfileStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


def _check_password(v: str) -> str:
    valid, error = validate_password_strength(v)
    if not valid:
        raise ValueError(error)
    return v


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str = Field(..., max_length=120)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)

    @field_validator('full_name')
    @classmethod
    def validate_name(cls, v):
        valid, error = validate_full_name(v)
        if not valid:
            raise ValueError(error)
        return v.strip()

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        valid, error = validate_phone_number(v)
        if not valid:
            raise ValueError(error)
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class ProfileOut(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    role: ProfileRole
    status: ProfileStatus
    company_id: Optional[UUID] = None
    user_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Campos de perfil editables por un administrador."""
    full_name: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=30)
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    role: Optional[ProfileRole] = None
    status: Optional[ProfileStatus] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        valid, error = validate_phone_number(v)
        if not valid:
            raise ValueError(error)
        return v


class UserOut(BaseModel):
    id: UUID
    email: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    profile: Optional[ProfileOut] = None

    class Config:
        from_attributes = True


class UserPage(BaseModel):
    users: List[UserOut]
    page: int
    per_page: int
    total: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8, max_length=72)

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class AdminPasswordResetRequest(BaseModel):
    # Sin validación estricta aquí: los campos faltantes se reportan como 400
    email: Optional[str] = None
    user_id: Optional[str] = None
    admin_id: Optional[str] = None


class AdminActionResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class AuthContext(BaseModel):
    user_id: UUID
    profile_id: UUID
    email: str
    company_id: Optional[UUID] = None
    role: Optional[ProfileRole] = None
