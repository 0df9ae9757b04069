from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
import enum
from app.database.database import Base
from app.common.mixins import TimestampMixin


class ProfileRole(enum.Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    STOCK_MANAGER = "stock_manager"
    USER = "user"


class ProfileStatus(enum.Enum):
    PENDING = "pending"    # Esperando aprobación de un admin
    ACTIVE = "active"
    INACTIVE = "inactive"


class InvitationStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


class User(Base, TimestampMixin):
    """Cuenta de identidad: email y contraseña. Los datos de negocio viven en Profile."""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    profile = relationship("Profile", back_populates="user", uselist=False)
    reset_tokens = relationship("PasswordResetToken", back_populates="user", cascade="all, delete-orphan")


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    department = Column(String, nullable=True)
    position = Column(String, nullable=True)
    role = Column(Enum(ProfileRole), nullable=False, default=ProfileRole.USER)
    status = Column(Enum(ProfileStatus), nullable=False, default=ProfileStatus.PENDING)

    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=True, index=True)
    # Enlace con la cuenta de identidad; puede faltar en perfiles creados por invitación
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, unique=True)

    # Relationships
    user = relationship("User", back_populates="profile")
    company = relationship("Company")


class UserInvitation(Base, TimestampMixin):
    __tablename__ = "user_invitations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    email = Column(String, nullable=False, index=True)
    role = Column(Enum(ProfileRole), nullable=False, default=ProfileRole.USER)
    status = Column(Enum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING)
    is_approved = Column(Boolean, default=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    invited_by = Column(UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)


class PasswordResetToken(Base, TimestampMixin):
    __tablename__ = "password_reset_tokens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    token = Column(String, unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    is_used = Column(Boolean, default=False)

    # Relationships
    user = relationship("User", back_populates="reset_tokens")
