"""
Envío de correos SMTP con plantillas Jinja2.

Dos correos salen del sistema: restablecimiento de contraseña y notificación
de documentos (factura, cotización, proforma) al cliente.
"""
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
PASSWORD_RESET_TEMPLATE = "password_reset_email.html"
DOCUMENT_TEMPLATE = "document_email.html"


class EmailService:

    def __init__(self):
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(['html', 'xml'])
        )

    def _connect(self) -> smtplib.SMTP:
        if settings.EMAIL_USE_TLS:
            server = smtplib.SMTP(settings.EMAIL_SMTP_SERVER, settings.EMAIL_SMTP_PORT)
            server.starttls(context=ssl.create_default_context())
        else:
            server = smtplib.SMTP_SSL(settings.EMAIL_SMTP_SERVER, settings.EMAIL_SMTP_PORT)
        if settings.EMAIL_USERNAME:
            server.login(settings.EMAIL_USERNAME, settings.EMAIL_PASSWORD)
        return server

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        return self.jinja_env.get_template(template_name).render(**context)

    def build_message(self, to_emails: List[str], subject: str, html_content: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = ', '.join(to_emails)
        msg.attach(MIMEText(html_content, 'html', 'utf-8'))
        return msg

    def send(self, to_emails: List[str], subject: str, template_name: str, context: Dict[str, Any]) -> bool:
        """
        Renderizar y enviar. Retorna False si falla el render o el SMTP;
        el reintento lo decide la tarea Celery que llama.
        """
        try:
            msg = self.build_message(to_emails, subject, self.render(template_name, context))
            with self._connect() as server:
                server.sendmail(self.from_email, to_emails, msg.as_string())
        except Exception as e:
            logger.error(f"Error sending '{subject}' to {', '.join(to_emails)}: {str(e)}")
            return False

        logger.info(f"Email '{subject}' sent to {', '.join(to_emails)}")
        return True

    def password_reset_context(self, user_name: str, reset_token: str, initiated_by_admin: bool) -> Dict[str, Any]:
        return {
            "user_name": user_name,
            "reset_url": f"{self.frontend_url}/reset-password?token={reset_token}",
            "initiated_by_admin": initiated_by_admin,
            "support_email": self.from_email,
        }

    def send_password_reset(self, user_email: str, user_name: str, reset_token: str,
                            initiated_by_admin: bool = False) -> bool:
        return self.send(
            [user_email],
            "Reset your MedPlus password",
            PASSWORD_RESET_TEMPLATE,
            self.password_reset_context(user_name, reset_token, initiated_by_admin)
        )

    def send_document_notification(
        self,
        to_email: str,
        customer_name: str,
        document_label: str,
        document_number: str,
        total_amount: str,
        currency: str,
        company_name: str,
        due_date: Optional[str] = None
    ) -> bool:
        """Aviso al cliente de una factura, cotización o proforma emitida."""
        context = {
            "customer_name": customer_name,
            "document_label": document_label,
            "document_number": document_number,
            "total_amount": total_amount,
            "currency": currency,
            "company_name": company_name,
            "due_date": due_date,
        }
        return self.send(
            [to_email],
            f"{document_label} {document_number} from {company_name}",
            DOCUMENT_TEMPLATE,
            context
        )


email_service = EmailService()
