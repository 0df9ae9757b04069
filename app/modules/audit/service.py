import logging
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.modules.audit.models import AuditLog

logger = logging.getLogger(__name__)


def record_audit_event(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: Optional[UUID] = None,
    actor_id: Optional[UUID] = None,
    company_id: Optional[UUID] = None,
    details: Optional[dict] = None
) -> AuditLog:
    """
    Agregar un evento de auditoría a la transacción actual.

    No hace commit: el registro se confirma junto con el cambio auditado,
    y un fallo aquí aborta toda la operación.
    """
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        company_id=company_id,
        details=details or {}
    )
    db.add(entry)
    db.flush()
    logger.info(f"Audit event {action} on {entity_type} {entity_id} by {actor_id}")
    return entry
