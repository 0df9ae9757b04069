"""
Tareas Celery de envío de correos. Reintentan con backoff exponencial
(1, 2, 4 minutos) antes de dar el envío por fallido.
"""
import logging
from typing import Optional
from app.core.celery import celery_app
from app.modules.email.service import email_service

logger = logging.getLogger(__name__)


def _retry_or_fail(task, exc: Exception, **result):
    if task.request.retries < task.max_retries:
        raise task.retry(exc=exc, countdown=60 * (2 ** task.request.retries))
    return {"status": "failed", "error": str(exc), **result}


@celery_app.task(bind=True, max_retries=3)
def send_password_reset_email_task(
    self,
    user_email: str,
    user_name: str,
    reset_token: str,
    initiated_by_admin: bool = False
):
    try:
        if not email_service.send_password_reset(user_email, user_name, reset_token, initiated_by_admin):
            raise RuntimeError("Failed to send password reset email")
    except Exception as exc:
        logger.error(f"Password reset email failed for {user_email}: {str(exc)}")
        return _retry_or_fail(self, exc, email=user_email)

    return {"status": "success", "email": user_email}


@celery_app.task(bind=True, max_retries=3)
def send_document_email_task(
    self,
    to_email: str,
    customer_name: str,
    document_label: str,
    document_number: str,
    total_amount: str,
    currency: str,
    company_name: str,
    due_date: Optional[str] = None
):
    """Notificar a un cliente sobre una factura, cotización o proforma."""
    try:
        sent = email_service.send_document_notification(
            to_email, customer_name, document_label, document_number,
            total_amount, currency, company_name, due_date
        )
        if not sent:
            raise RuntimeError(f"Failed to send {document_label.lower()} email")
    except Exception as exc:
        logger.error(f"{document_label} email failed for {document_number}: {str(exc)}")
        return _retry_or_fail(self, exc, document_number=document_number)

    return {"status": "success", "document_number": document_number}
