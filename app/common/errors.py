"""
Clasificación de errores del backend.

La taxonomía es plana y basada en el texto del error: se usa para decidir
qué mensaje mostrar y si un error amerita reintento (solo rate limit).
"""
import enum
import logging
from typing import Any, Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    NOT_FOUND_SCHEMA = "not_found_schema"  # tabla o función no existe
    AUTH = "auth"                          # sesión o credenciales inválidas
    PERMISSION = "permission"              # permiso denegado / aislamiento por empresa
    VALIDATION = "validation"              # validación o constraint
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    UNKNOWN = "unknown"


class BackendError(Exception):
    """Error de lectura/escritura contra la base de datos, con su clasificación."""

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or classify_error(message)

    def __str__(self):
        return self.message


_PATTERNS = [
    (ErrorKind.RATE_LIMITED, ("rate limit", "too many requests", "status 429", "error 429", "http 429")),
    (ErrorKind.NOT_FOUND_SCHEMA, ("does not exist", "no such table", "no such column", "undefinedtable", "pgrst202")),
    (ErrorKind.AUTH, ("invalid login credentials", "jwt", "expired token", "invalid token",
                      "could not validate credentials", "session expired", "invalid session",
                      "session not found", "not authenticated")),
    (ErrorKind.PERMISSION, ("permission denied", "row-level security", "insufficient_privilege",
                            "forbidden", "unauthorized", "no tienes acceso")),
    (ErrorKind.VALIDATION, ("violates", "constraint", "invalid", "validation", "required", "null value",
                            "must be", "cannot", "integrity")),
    (ErrorKind.NETWORK, ("timeout", "timed out", "network", "connection refused", "could not connect")),
]


def extract_error_message(error: Any, default: str = "An unknown error occurred") -> str:
    """
    Extraer un mensaje legible de cualquier objeto de error.

    Soporta excepciones, HTTPException (detail str/dict/list), dicts con
    llaves message/details/hint/error y strings.
    """
    if error is None:
        return default

    if isinstance(error, HTTPException):
        return extract_error_message(error.detail, default)

    if isinstance(error, str):
        return error or default

    if isinstance(error, dict):
        for key in ("message", "detail", "details", "hint", "error", "msg"):
            value = error.get(key)
            if value:
                return extract_error_message(value, default)
        if error.get("errors"):
            return extract_error_message(error["errors"], default)
        return default

    if isinstance(error, (list, tuple)):
        parts = [extract_error_message(item, "") for item in error]
        parts = [p for p in parts if p]
        return "; ".join(parts) if parts else default

    if isinstance(error, BaseException):
        message = str(error)
        # SQLAlchemy envuelve el error del driver en .orig
        orig = getattr(error, "orig", None)
        if orig is not None and str(orig):
            message = str(orig)
        return message or error.__class__.__name__

    return str(error) or default


def classify_error(error: Any) -> ErrorKind:
    """Clasificar un error por su texto."""
    if isinstance(error, BackendError):
        return error.kind

    message = extract_error_message(error, "").lower()
    if not message:
        return ErrorKind.UNKNOWN

    for kind, needles in _PATTERNS:
        if any(needle in message for needle in needles):
            return kind
    return ErrorKind.UNKNOWN


def is_rate_limit_error(error: Any) -> bool:
    return classify_error(error) == ErrorKind.RATE_LIMITED


def user_friendly_message(error: Any, context: Optional[str] = None) -> str:
    """Mensaje para mostrar al usuario según el tipo de error."""
    message = extract_error_message(error)
    kind = classify_error(error)

    if kind == ErrorKind.NOT_FOUND_SCHEMA:
        friendly = "Database schema is incomplete. Please run the database setup or contact support."
    elif kind == ErrorKind.AUTH:
        friendly = "Your session is invalid or has expired. Please sign in again."
    elif kind == ErrorKind.PERMISSION:
        friendly = "Permission denied: please check your role or contact your administrator."
    elif kind == ErrorKind.RATE_LIMITED:
        friendly = "Too many requests. Please wait a moment and try again."
    elif kind == ErrorKind.NETWORK:
        friendly = "Network connection error. Please check your connection and try again."
    else:
        friendly = message

    if context:
        return f"Failed to {context}: {friendly}"
    return friendly
