"""
Cálculo de líneas y totales para documentos comerciales
(cotizaciones, proformas, facturas, notas crédito y órdenes de compra).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value) -> Decimal:
    """Redondear a 2 decimales (half-up)."""
    if value is None:
        return ZERO.quantize(CENT)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_line(quantity, unit_price, discount_percentage=0, tax_percentage=0) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Retorna (subtotal, tax_amount, line_total) de una línea.

    El descuento se aplica antes del impuesto.
    """
    base = Decimal(str(quantity)) * Decimal(str(unit_price))
    discount = Decimal(str(discount_percentage or 0))
    if discount:
        base = base * (Decimal("100") - discount) / Decimal("100")
    subtotal = money(base)
    tax_amount = money(subtotal * Decimal(str(tax_percentage or 0)) / Decimal("100"))
    return subtotal, tax_amount, subtotal + tax_amount


def calculate_totals(lines: Iterable[Tuple[Decimal, Decimal, Decimal]]) -> Tuple[Decimal, Decimal, Decimal]:
    """Sumar (subtotal, tax_amount, total) de las líneas calculadas."""
    subtotal = tax = ZERO
    for line_subtotal, line_tax, _ in lines:
        subtotal += line_subtotal
        tax += line_tax
    return money(subtotal), money(tax), money(subtotal + tax)


def build_line_items(item_cls, items) -> Tuple[list, Tuple[Decimal, Decimal, Decimal]]:
    """
    Construir instancias `item_cls` a partir de LineItemCreate (o de otras
    líneas ya persistidas) y retornar (items, (subtotal, tax_amount, total)).
    """
    built = []
    lines = []
    for index, item in enumerate(items):
        line = calculate_line(item.quantity, item.unit_price, item.discount_percentage, item.tax_percentage)
        lines.append(line)
        built.append(item_cls(
            product_id=item.product_id,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount_percentage=item.discount_percentage or 0,
            tax_percentage=item.tax_percentage or 0,
            tax_amount=line[1],
            line_total=line[2],
            sort_order=index
        ))
    return built, calculate_totals(lines)
