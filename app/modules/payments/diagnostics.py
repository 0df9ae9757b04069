"""
Diagnóstico de la asignación de pagos.

Verifica en orden: que exista la tabla payment_allocations, que el perfil
del usuario esté vinculado a una empresa, y que el registro de pagos
responda "Invoice not found" con datos de prueba. El intento corre dentro
de un savepoint que siempre se revierte.
"""
import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.common.errors import ErrorKind, classify_error, extract_error_message
from app.modules.auth.models import User, Profile
from app.modules.payments.schemas import DiagnosticResult, PaymentCreate
from app.modules.payments.service import PaymentService

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = UUID(int=0)
EXPECTED_ERROR = "invoice not found"


def run_payment_allocation_diagnostic(db: Session, user: User) -> DiagnosticResult:
    details = {
        "step": "table",
        "table_exists": False,
        "profile_linked": False,
        "function_exists": False,
        "function_working": False,
    }

    try:
        details["table_exists"] = inspect(db.get_bind()).has_table("payment_allocations")
    except Exception as e:
        logger.error(f"Payment diagnostic could not inspect schema: {str(e)}")
        details["error"] = extract_error_message(e)
        return DiagnosticResult(success=False, message="Could not inspect database schema", details=details)

    if not details["table_exists"]:
        return DiagnosticResult(
            success=False,
            message="payment_allocations table is missing. Run the database setup.",
            details=details
        )

    details["step"] = "profile"
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if profile is None or profile.company_id is None:
        return DiagnosticResult(
            success=False,
            message="User profile is not linked to a company",
            details=details
        )
    details["profile_linked"] = True
    details["company_id"] = str(profile.company_id)

    details["step"] = "function"
    service = PaymentService(db)
    details["function_exists"] = callable(getattr(service, "record_payment_with_allocation", None))
    if not details["function_exists"]:
        return DiagnosticResult(success=False, message="Payment recording is not available", details=details)

    placeholder = PaymentCreate(
        invoice_id=PLACEHOLDER_ID,
        customer_id=PLACEHOLDER_ID,
        payment_number="DIAGNOSTIC",
        amount=Decimal("1"),
        notes="diagnostic"
    )

    savepoint = db.begin_nested()
    error_message = None
    try:
        service.record_payment_with_allocation(profile.company_id, placeholder, user.id, commit=False)
    except Exception as e:
        error_message = extract_error_message(e)
        kind = classify_error(e)
    finally:
        if savepoint.is_active:
            savepoint.rollback()

    details["step"] = "complete"
    if error_message is None:
        # Con datos inexistentes nunca debería completar
        details["error"] = "Call with placeholder data did not fail"
        return DiagnosticResult(
            success=False,
            message="Payment recording accepted an unknown invoice",
            details=details
        )

    details["error"] = error_message
    if EXPECTED_ERROR in error_message.lower():
        details["function_working"] = True
        return DiagnosticResult(success=True, message="Payment allocation is working", details=details)

    if kind == ErrorKind.NOT_FOUND_SCHEMA:
        message = "Payment recording references missing database objects"
    elif kind == ErrorKind.PERMISSION:
        message = "Permission denied while recording payments"
    else:
        message = f"Unexpected error: {error_message}"
    logger.warning(f"Payment diagnostic failed for {user.email}: {error_message}")
    return DiagnosticResult(success=False, message=message, details=details)
