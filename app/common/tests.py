"""
Tests de utilidades comunes: validadores, clasificación de errores,
reintentos con backoff y cálculo de totales.
"""
from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.common.errors import BackendError, ErrorKind, classify_error, extract_error_message, user_friendly_message
from app.common.retry import retry_with_backoff
from app.common.totals import calculate_line, calculate_totals, money
from app.common.validators import (
    is_valid_uuid, filter_valid_uuids, safe_uuid, validate_required_uuid, validate_optional_uuid,
    validate_email, validate_email_with_message, validate_password_strength, has_special_characters,
    validate_full_name, validate_phone_number
)

VALID_UUID = "123e4567-e89b-12d3-a456-426614174000"


class TestUuidValidators:

    def test_is_valid_uuid(self):
        assert is_valid_uuid(VALID_UUID) is True
        assert is_valid_uuid(VALID_UUID.upper()) is True
        assert is_valid_uuid("not-a-uuid") is False
        assert is_valid_uuid("") is False
        assert is_valid_uuid(None) is False

    def test_filter_valid_uuids(self):
        assert filter_valid_uuids([VALID_UUID, None, "", "abc"]) == [VALID_UUID]

    def test_safe_uuid(self):
        assert safe_uuid(VALID_UUID) == VALID_UUID
        assert safe_uuid("abc") is None

    def test_validate_required_uuid(self):
        assert validate_required_uuid(VALID_UUID, "invoice id") == VALID_UUID
        with pytest.raises(ValueError, match="Invalid invoice id"):
            validate_required_uuid("", "invoice id")

    def test_validate_optional_uuid(self):
        assert validate_optional_uuid(None, "customer id") is None
        with pytest.raises(ValueError):
            validate_optional_uuid("", "customer id")


class TestEmailAndPasswordValidators:

    def test_validate_email(self):
        assert validate_email("user@example.com") is True
        assert validate_email("bad-email") is False
        assert validate_email("two words@example.com") is False

    def test_validate_email_with_message(self):
        assert validate_email_with_message("") == (False, "Email is required")
        assert validate_email_with_message("nope") == (False, "Please enter a valid email address")
        assert validate_email_with_message("a@b.co") == (True, None)

    def test_password_strength(self):
        valid, message = validate_password_strength("abc")
        assert valid is False
        assert "at least 8" in message

        valid, message = validate_password_strength("abcdefgh")
        assert valid is False
        assert "uppercase" in message

        assert validate_password_strength("Abcdefg1") == (True, None)

    def test_special_characters_are_optional(self):
        assert has_special_characters("Abcdefg1") is False
        assert has_special_characters("Abcdefg1!") is True

    def test_full_name_and_phone(self):
        assert validate_full_name(" ")[0] is False
        assert validate_full_name("A")[0] is False
        assert validate_full_name("Jane Wanjiku") == (True, None)
        assert validate_phone_number(None) == (True, None)
        assert validate_phone_number("+254 (712) 345-678") == (True, None)
        assert validate_phone_number("call me")[0] is False


class TestErrorClassification:

    def test_classify_by_message(self):
        assert classify_error(Exception('relation "payment_allocations" does not exist')) == ErrorKind.NOT_FOUND_SCHEMA
        assert classify_error("permission denied for table invoices") == ErrorKind.PERMISSION
        assert classify_error("429 Too Many Requests") == ErrorKind.RATE_LIMITED
        assert classify_error("connection refused") == ErrorKind.NETWORK
        assert classify_error("something odd") == ErrorKind.UNKNOWN

    def test_document_numbers_and_orm_sessions_are_not_misread(self):
        assert classify_error("Invoice INV-000429 not found") == ErrorKind.UNKNOWN
        assert classify_error("HTTP 429 from identity service") == ErrorKind.RATE_LIMITED
        assert classify_error(
            "This Session's transaction has been rolled back due to a previous exception during flush"
        ) == ErrorKind.UNKNOWN
        assert classify_error("Session expired, please sign in") == ErrorKind.AUTH

    def test_extract_error_message(self):
        assert extract_error_message(None) == "An unknown error occurred"
        assert extract_error_message({"message": "boom"}) == "boom"
        assert extract_error_message({"details": {"hint": "check"}}) == "check"
        assert extract_error_message(HTTPException(status_code=404, detail="Invoice not found")) == "Invoice not found"
        assert extract_error_message(ValueError("bad value")) == "bad value"

    def test_backend_error_keeps_kind(self):
        error = BackendError("profile not found", ErrorKind.VALIDATION)
        assert classify_error(error) == ErrorKind.VALIDATION
        assert str(error) == "profile not found"

    def test_user_friendly_message(self):
        assert user_friendly_message("jwt expired").startswith("Your session")
        assert user_friendly_message("boom", context="load invoices") == "Failed to load invoices: boom"


class TestRetryWithBackoff:

    def test_retries_rate_limited_errors(self):
        attempts = []
        delays = []

        def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise Exception("rate limit exceeded")
            return "ok"

        assert retry_with_backoff(operation, max_retries=3, base_delay=1, sleep=delays.append) == "ok"
        assert len(attempts) == 3
        assert delays == [1, 2]

    def test_other_errors_are_not_retried(self):
        attempts = []

        def operation():
            attempts.append(1)
            raise ValueError("invalid input")

        with pytest.raises(ValueError):
            retry_with_backoff(operation, max_retries=3, base_delay=0, sleep=lambda _: None)
        assert len(attempts) == 1

    def test_last_rate_limit_error_is_raised(self):
        with pytest.raises(Exception, match="too many requests"):
            retry_with_backoff(
                lambda: (_ for _ in ()).throw(Exception("too many requests")),
                max_retries=2, base_delay=0, sleep=lambda _: None
            )


class TestTotals:

    def test_money_rounds_half_up(self):
        assert money("1.005") == Decimal("1.01")
        assert money(None) == Decimal("0.00")

    def test_calculate_line_applies_discount_before_tax(self):
        subtotal, tax, total = calculate_line(2, "100", 10, 16)
        assert subtotal == Decimal("180.00")
        assert tax == Decimal("28.80")
        assert total == Decimal("208.80")

    def test_calculate_totals(self):
        lines = [calculate_line(1, "50", 0, 16), calculate_line(3, "10", 0, 0)]
        assert calculate_totals(lines) == (Decimal("80.00"), Decimal("8.00"), Decimal("88.00"))
