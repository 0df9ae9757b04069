"""
Módulo de email: servicio SMTP con templates y tareas Celery.
"""

from .service import email_service
from .tasks import send_password_reset_email_task, send_document_email_task

__all__ = [
    'email_service',
    'send_password_reset_email_task',
    'send_document_email_task'
]
