import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.modules.auth.models import User, Profile, ProfileRole, ProfileStatus, PasswordResetToken
from app.modules.auth.schemas import UserCreate, UserOut, UserPage, TokenResponse, ProfileUpdate
from app.modules.auth.utils import hash_password, verify_password, create_access_token, generate_secure_token
from app.modules.audit.service import record_audit_event
from app.modules.email.tasks import send_password_reset_email_task
from app.common.validators import safe_uuid
from app.core.config import settings

logger = logging.getLogger(__name__)


class AuthService:
    """
    Servicio de autenticación: cuentas de identidad, perfiles y restablecimiento de contraseña.
    """

    def __init__(self, db: Session):
        self.db = db

    def _find_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).options(
            selectinload(User.profile)
        ).filter(func.lower(User.email) == email.strip().lower()).first()

    def create_user(self, user_data: UserCreate) -> User:
        """
        Registrar una cuenta nueva con su perfil en estado pendiente.
        El perfil queda activo al crear una empresa o al ser aprobado.
        """
        if self._find_user_by_email(user_data.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="This email is already registered"
            )

        try:
            user = User(
                email=user_data.email.lower(),
                password=hash_password(user_data.password)
            )
            self.db.add(user)
            self.db.flush()

            # Reusar un perfil creado por invitación con el mismo email
            profile = self.db.query(Profile).filter(
                func.lower(Profile.email) == user.email,
                Profile.user_id.is_(None)
            ).first()
            if profile is None:
                profile = Profile(email=user.email, role=ProfileRole.USER, status=ProfileStatus.PENDING)
                self.db.add(profile)

            profile.user_id = user.id
            profile.full_name = user_data.full_name
            profile.phone = user_data.phone

            self.db.commit()
            self.db.refresh(user)
            logger.info(f"User registered: {user.email}")
            return user
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registering user {user_data.email}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creating user account"
            )

    def login(self, email: str, password: str) -> TokenResponse:
        user = self._find_user_by_email(email)

        if not user or not verify_password(password, user.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is inactive"
            )

        if user.profile and user.profile.status == ProfileStatus.INACTIVE:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Profile has been deactivated"
            )

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()

        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "user_name": user.profile.full_name if user.profile else None
        }
        access_token = create_access_token(token_data)

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserOut.model_validate(user)
        )

    def list_users(self, page: int = 1, per_page: Optional[int] = None) -> UserPage:
        """Listar cuentas de identidad paginadas (1-based)."""
        per_page = min(per_page or settings.USERS_PAGE_SIZE, settings.MAX_PAGE_SIZE * 10)
        page = max(page, 1)

        query = self.db.query(User).options(selectinload(User.profile))
        total = query.count()
        users = query.order_by(User.created_at, User.email).offset((page - 1) * per_page).limit(per_page).all()

        return UserPage(
            users=[UserOut.model_validate(u) for u in users],
            page=page,
            per_page=per_page,
            total=total
        )

    def get_profile(self, profile_id: UUID) -> Profile:
        profile = self.db.query(Profile).filter(Profile.id == profile_id).first()
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profile not found"
            )
        return profile

    def update_profile(
        self,
        profile_id: UUID,
        data: ProfileUpdate,
        admin_profile_id: UUID,
        company_id: UUID
    ) -> Profile:
        """Actualizar campos de un perfil de la misma empresa."""
        profile = self.get_profile(profile_id)
        if profile.company_id != company_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profile not found"
            )

        try:
            changes = data.model_dump(exclude_unset=True)
            for field, value in changes.items():
                if field == "role" and value is not None:
                    value = ProfileRole(value)
                elif field == "status" and value is not None:
                    value = ProfileStatus(value)
                setattr(profile, field, value)

            record_audit_event(
                self.db,
                action="profile_updated",
                entity_type="profile",
                entity_id=profile.id,
                actor_id=admin_profile_id,
                company_id=company_id,
                details={k: str(v) if v is not None else None for k, v in changes.items()}
            )
            self.db.commit()
            self.db.refresh(profile)
            return profile
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating profile {profile_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating profile"
            )

    def _issue_reset_token(self, user: User) -> str:
        # Invalidar tokens anteriores
        self.db.query(PasswordResetToken).filter(
            PasswordResetToken.user_id == user.id,
            PasswordResetToken.is_used == False
        ).update({"is_used": True})

        reset_token = generate_secure_token()
        self.db.add(PasswordResetToken(
            user_id=user.id,
            token=reset_token,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.PASSWORD_RESET_EXPIRE_HOURS)
        ))
        self.db.flush()
        return reset_token

    @staticmethod
    def _display_name(user: User) -> str:
        if user.profile and user.profile.full_name:
            return user.profile.full_name
        return user.email

    def request_password_reset(self, email: str) -> bool:
        """Solicitar restablecimiento de contraseña."""
        user = self._find_user_by_email(email)
        if not user:
            # No revelar si el email existe o no
            return True

        reset_token = self._issue_reset_token(user)
        self.db.commit()

        send_password_reset_email_task.delay(
            user_email=user.email,
            user_name=self._display_name(user),
            reset_token=reset_token
        )
        return True

    def reset_password(self, token: str, new_password: str) -> User:
        """Restablecer contraseña con token."""
        reset_token = self.db.query(PasswordResetToken).filter(
            PasswordResetToken.token == token,
            PasswordResetToken.is_used == False,
            PasswordResetToken.expires_at > datetime.now(timezone.utc)
        ).first()

        if not reset_token:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid or expired reset token"
            )

        user = reset_token.user
        user.password = hash_password(new_password)

        reset_token.is_used = True
        reset_token.used_at = datetime.now(timezone.utc)

        self.db.commit()
        logger.info(f"Password reset completed for {user.email}")
        return user

    def admin_reset_password(
        self,
        email: Optional[str],
        user_id: Optional[str],
        admin_id: Optional[str],
        caller_profile_id: UUID
    ) -> None:
        """
        Restablecimiento de contraseña iniciado por un administrador.
        `admin_id` debe coincidir con el perfil autenticado y el perfil
        destino debe pertenecer a su misma empresa.

        El token y el registro de auditoría se confirman juntos; si la
        auditoría falla no se emite ningún token. El correo se encola
        después del commit.
        """
        if not email or not user_id or not admin_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required fields: email, user_id, admin_id"
            )

        admin_uuid = safe_uuid(admin_id)
        if not admin_uuid or UUID(admin_uuid) != caller_profile_id:
            logger.warning(f"Password reset by profile {caller_profile_id} claimed admin_id {admin_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="admin_id does not match the authenticated user"
            )

        admin = self.db.query(Profile).filter(Profile.id == caller_profile_id).first()
        if not admin or admin.role != ProfileRole.ADMIN or admin.status != ProfileStatus.ACTIVE:
            logger.warning(f"Password reset attempted by non-admin {admin_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only administrators can reset passwords"
            )

        target_uuid = safe_uuid(user_id)
        target = None
        if target_uuid:
            target = self.db.query(Profile).filter(
                (Profile.id == UUID(target_uuid)) | (Profile.user_id == UUID(target_uuid))
            ).first()
        if not target or target.company_id != admin.company_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User profile not found"
            )

        user = self._find_user_by_email(email)
        if not user or (target.user_id and user.id != target.user_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No account exists for this email"
            )

        try:
            reset_token = self._issue_reset_token(user)
            record_audit_event(
                self.db,
                action="admin_password_reset",
                entity_type="profile",
                entity_id=target.id,
                actor_id=admin.id,
                company_id=admin.company_id,
                details={"email": user.email}
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Admin password reset for {email} failed: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to record password reset"
            )

        try:
            send_password_reset_email_task.delay(
                user_email=user.email,
                user_name=self._display_name(user),
                reset_token=reset_token,
                initiated_by_admin=True
            )
        except Exception as e:
            logger.error(f"Could not queue password reset email for {email}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to send password reset email"
            )

        logger.info(f"Admin {admin.email} reset password for {user.email}")
