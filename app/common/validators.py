"""
Validadores genéricos: emails, contraseñas, UUIDs, nombres y teléfonos.
"""
import re
from typing import Any, Iterable, List, Optional, Tuple

UUID_REGEX = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_REGEX = re.compile(r'^[\d\s\-+()]*\d[\d\s\-+()]*$')
SPECIAL_CHARS_REGEX = re.compile(r'[!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>/?]')

MIN_PASSWORD_LENGTH = 8


def is_valid_uuid(value: Any) -> bool:
    """True solo para strings con formato UUID canónico (8-4-4-4-12)."""
    return isinstance(value, str) and bool(UUID_REGEX.match(value))


def filter_valid_uuids(ids: Iterable[Any]) -> List[str]:
    """Filtrar None, strings vacíos y valores que no son UUID."""
    return [value for value in ids if is_valid_uuid(value)]


def safe_uuid(value: Any) -> Optional[str]:
    return value if is_valid_uuid(value) else None


def validate_required_uuid(value: Any, field_name: str) -> str:
    if not is_valid_uuid(value):
        raise ValueError(f"Invalid {field_name}. Please refresh and try again.")
    return value


def validate_optional_uuid(value: Any, field_name: str) -> Optional[str]:
    """Permite None; rechaza strings vacíos o con formato inválido."""
    if value is None:
        return None
    if not is_valid_uuid(value):
        raise ValueError(f"Invalid {field_name}. Please refresh and try again.")
    return value


def validate_email(email: str) -> bool:
    if not isinstance(email, str):
        return False
    return bool(EMAIL_REGEX.match(email))


def validate_email_with_message(email: str) -> Tuple[bool, Optional[str]]:
    if not email or not email.strip():
        return False, "Email is required"
    if not validate_email(email):
        return False, "Please enter a valid email address"
    return True, None


def validate_password_strength(password: str) -> Tuple[bool, Optional[str]]:
    """
    Valida la fortaleza de la contraseña.
    Requisitos:
    - Mínimo 8 caracteres
    - Al menos una mayúscula, una minúscula y un número

    Returns:
        (es_valida, mensaje_de_error)
    """
    if not password:
        return False, "Password is required"

    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

    has_upper = re.search(r'[A-Z]', password) is not None
    has_lower = re.search(r'[a-z]', password) is not None
    has_digit = re.search(r'\d', password) is not None

    if not (has_upper and has_lower and has_digit):
        return False, "Password must contain uppercase, lowercase, and numbers"

    return True, None


def has_special_characters(password: str) -> bool:
    # Solo como recomendación, no es requisito
    return bool(SPECIAL_CHARS_REGEX.search(password or ""))


def validate_full_name(name: str) -> Tuple[bool, Optional[str]]:
    if not name or not name.strip():
        return False, "Full name is required"
    if len(name.strip()) < 2:
        return False, "Full name must be at least 2 characters"
    return True, None


def validate_phone_number(phone: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validación básica de teléfono. El teléfono es opcional.
    Formatos aceptados: +254 (712) 345-678, 0712-345-678, 0712345678, etc.
    """
    if not phone:
        return True, None
    if not PHONE_REGEX.match(phone):
        return False, "Please enter a valid phone number"
    return True, None
