# app/shared/money.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

THREE_PLACES = Decimal("0.001")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convertir a Decimal sin arrastrar el error binario de los float"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round3(value: Number) -> Decimal:
    """Redondeo a 3 decimales (mitad hacia arriba), igual que toFixed(3) en los montos"""
    return to_decimal(value).quantize(THREE_PLACES, rounding=ROUND_HALF_UP)


def line_subtotal(quantity: int, unit_amount: Number) -> Decimal:
    return round3(to_decimal(quantity) * to_decimal(unit_amount))


def sum_amounts(amounts: Iterable[Number]) -> Decimal:
    return round3(sum((to_decimal(a) for a in amounts), Decimal("0")))


def tax_amount(subtotal: Number, percentage: Number) -> Decimal:
    return round3(to_decimal(subtotal) * to_decimal(percentage) / Decimal("100"))
