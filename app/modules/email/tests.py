"""
Tests del servicio de correo: plantillas y envío SMTP (servidor simulado).
"""
from app.modules.email import service as email_module
from app.modules.email.service import EmailService, DOCUMENT_TEMPLATE, PASSWORD_RESET_TEMPLATE


class FakeSMTP:
    sent = []

    def __init__(self, *args, **kwargs):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def starttls(self, context=None):
        pass

    def login(self, username, password):
        pass

    def sendmail(self, from_email, recipients, message):
        FakeSMTP.sent.append((from_email, recipients, message))


class TestTemplates:

    def test_password_reset_mentions_admin(self):
        service = EmailService()
        context = service.password_reset_context("Grace", "tok123", initiated_by_admin=True)
        html = service.render(PASSWORD_RESET_TEMPLATE, context)
        assert "An administrator has started a password reset" in html
        assert "/reset-password?token=tok123" in html

    def test_document_template(self):
        html = EmailService().render(DOCUMENT_TEMPLATE, {
            "customer_name": "Nairobi General Hospital",
            "document_label": "Invoice",
            "document_number": "INV-000001",
            "total_amount": "8500.00",
            "currency": "KES",
            "company_name": "MedPlus",
            "due_date": "2024-07-01",
        })
        assert "INV-000001" in html
        assert "KES" in html


class TestSending:

    def test_send_document_notification(self, monkeypatch):
        FakeSMTP.sent = []
        monkeypatch.setattr(email_module.smtplib, "SMTP", FakeSMTP)
        monkeypatch.setattr(email_module.smtplib, "SMTP_SSL", FakeSMTP)

        sent = EmailService().send_document_notification(
            "accounts@ngh.medplus.app", "NGH", "Quotation", "QT-000004", "1200.00", "KES", "MedPlus"
        )

        assert sent is True
        _, recipients, message = FakeSMTP.sent[0]
        assert recipients == ["accounts@ngh.medplus.app"]
        assert "Quotation QT-000004 from MedPlus" in message

    def test_smtp_failure_returns_false(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("smtp down")

        monkeypatch.setattr(email_module.smtplib, "SMTP", refuse)
        monkeypatch.setattr(email_module.smtplib, "SMTP_SSL", refuse)

        assert EmailService().send_password_reset("a@medplus.app", "A", "tok") is False
