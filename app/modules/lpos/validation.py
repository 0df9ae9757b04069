"""
Reglas de validación de órdenes de compra (LPO).

Se aplican antes de crear o editar; todos los errores se acumulan para
mostrarlos juntos.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

MIN_LPO_DATE = date(2020, 1, 1)
MAX_QUANTITY = Decimal("999999")
MAX_UNIT_PRICE = Decimal("99999999")
LOCKED_STATUSES = ("received", "cancelled")


@dataclass
class LPOValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _value(source: Any, name: str) -> Any:
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_decimal(value: Any) -> Optional[Decimal]:
    """None si el valor no es un número finito."""
    try:
        number = Decimal(str(value or 0))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _one_year_after(day: date) -> date:
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        # 29 de febrero
        return day.replace(year=day.year + 1, day=28)


def validate_lpo(data: Any, today: Optional[date] = None) -> LPOValidationResult:
    """Validar proveedor, fecha e ítems de una LPO (schema o dict)."""
    today = today or date.today()
    errors = []

    if not _value(data, "supplier_id"):
        errors.append("Supplier is required")

    lpo_date = _value(data, "lpo_date")
    if not lpo_date:
        errors.append("LPO date is required")

    items = _value(data, "items") or []
    if not items:
        errors.append("At least one item is required")

    if lpo_date:
        try:
            lpo_date = _as_date(lpo_date)
        except ValueError:
            errors.append("LPO date is invalid")
        else:
            if lpo_date < MIN_LPO_DATE:
                errors.append("LPO date cannot be before 2020")
            if lpo_date > _one_year_after(today):
                errors.append("LPO date cannot be more than one year in the future")

    for index, item in enumerate(items, start=1):
        prefix = f"Item {index}:"
        description = _value(item, "description")
        quantity = _as_decimal(_value(item, "quantity"))
        unit_price = _as_decimal(_value(item, "unit_price"))

        if not _value(item, "product_id"):
            errors.append(f"{prefix} Product selection is required")
        if not description or not str(description).strip():
            errors.append(f"{prefix} Description is required")
        if quantity is None:
            errors.append(f"{prefix} Quantity is invalid")
        elif quantity <= 0:
            errors.append(f"{prefix} Quantity must be greater than 0")
        elif quantity > MAX_QUANTITY:
            errors.append(f"{prefix} Quantity cannot exceed 999,999")
        if unit_price is None:
            errors.append(f"{prefix} Unit price is invalid")
        elif unit_price < 0:
            errors.append(f"{prefix} Unit price cannot be negative")
        elif unit_price > MAX_UNIT_PRICE:
            errors.append(f"{prefix} Unit price cannot exceed 99,999,999")

    return LPOValidationResult(is_valid=not errors, errors=errors)


def validate_lpo_edit(data: Any, current_status: str, today: Optional[date] = None) -> LPOValidationResult:
    """Como validate_lpo, y además rechaza LPOs recibidas o anuladas."""
    result = validate_lpo(data, today)
    errors = list(result.errors)

    status = getattr(current_status, "value", current_status)
    if status in LOCKED_STATUSES:
        errors.append(f"Cannot edit a {status} LPO")

    return LPOValidationResult(is_valid=not errors, errors=errors)
