"""
Operaciones de mantenimiento de cuentas ejecutadas con la conexión de servicio.

Las usan los scripts de `scripts/`; aquí viven como funciones para poder
probarlas sin proceso externo.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.common.errors import BackendError, ErrorKind, extract_error_message
from app.common.retry import retry_with_backoff
from app.core.config import settings
from app.modules.auth.models import User, Profile, ProfileStatus, UserInvitation, InvitationStatus

logger = logging.getLogger(__name__)


@dataclass
class AdminApprovalResult:
    email: str
    previous_status: Optional[str]
    role: Optional[str]
    invitations_approved: List[str] = field(default_factory=list)
    invitation_errors: List[str] = field(default_factory=list)


@dataclass
class ReconcileSummary:
    scanned: int = 0
    matched: int = 0
    updated: int = 0
    already_linked: int = 0
    unmatched: int = 0
    dry_run: bool = False
    planned_links: List[tuple] = field(default_factory=list)


def approve_admin_account(db: Session, email: Optional[str] = None) -> AdminApprovalResult:
    """
    Activar el perfil del administrador y aprobar sus invitaciones pendientes.

    Lanza BackendError si el perfil no existe o si falla la actualización
    del perfil. Un fallo al aprobar una invitación solo se reporta.
    """
    email = (email or settings.ADMIN_EMAIL).strip().lower()

    try:
        profile = db.query(Profile).filter(func.lower(Profile.email) == email).first()
    except Exception as e:
        raise BackendError(f"Error fetching profile: {extract_error_message(e)}")

    if not profile:
        raise BackendError(f"{email} profile not found", ErrorKind.VALIDATION)

    result = AdminApprovalResult(
        email=profile.email,
        previous_status=profile.status.value if profile.status else None,
        role=profile.role.value if profile.role else None
    )

    try:
        profile.status = ProfileStatus.ACTIVE
        db.commit()
    except Exception as e:
        db.rollback()
        raise BackendError(f"Error updating profile: {extract_error_message(e)}")

    invitations = db.query(UserInvitation).filter(
        func.lower(UserInvitation.email) == email,
        UserInvitation.status == InvitationStatus.PENDING
    ).all()

    for invitation in invitations:
        try:
            with db.begin_nested():
                invitation.is_approved = True
                invitation.approved_at = datetime.now(timezone.utc)
            result.invitations_approved.append(str(invitation.id))
        except Exception as e:
            logger.warning(f"Could not approve invitation {invitation.id}: {extract_error_message(e)}")
            result.invitation_errors.append(str(invitation.id))
    db.commit()

    logger.info(f"Admin account {email} approved ({len(result.invitations_approved)} invitations)")
    return result


def _fetch_users_page(db: Session, page: int, per_page: int) -> List[User]:
    return retry_with_backoff(
        lambda: db.query(User).order_by(User.created_at, User.id).offset((page - 1) * per_page).limit(per_page).all()
    )


def reconcile_auth_users(
    db: Session,
    dry_run: bool = False,
    page_size: Optional[int] = None,
    report: Callable[[str], None] = logger.info
) -> ReconcileSummary:
    """
    Enlazar perfiles sin user_id con la cuenta de identidad del mismo email.

    Recorre las cuentas por páginas hasta recibir una página incompleta.
    Con dry_run solo reporta los enlaces que haría.
    """
    per_page = page_size or settings.USERS_PAGE_SIZE
    summary = ReconcileSummary(dry_run=dry_run)
    page = 1

    while True:
        users = _fetch_users_page(db, page, per_page)
        if not users:
            break

        for user in users:
            summary.scanned += 1
            email = (user.email or "").strip().lower()
            if not email:
                continue

            profile = db.query(Profile).filter(func.lower(Profile.email) == email).first()
            if not profile:
                summary.unmatched += 1
                continue

            summary.matched += 1
            if profile.user_id:
                summary.already_linked += 1
                continue

            report(f"Will link profile {profile.id} (email={profile.email}) -> user_id={user.id}")
            summary.planned_links.append((profile.id, user.id))

            if not dry_run:
                try:
                    profile.user_id = user.id
                    db.commit()
                    summary.updated += 1
                except Exception as e:
                    db.rollback()
                    logger.error(f"Failed to update profile {profile.id}: {extract_error_message(e)}")

        if len(users) < per_page:
            break
        page += 1

    return summary
