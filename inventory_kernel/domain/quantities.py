"""Quantities -- Decimal coercion and the single sanctioned rounding rule."""

from decimal import ROUND_HALF_UP, Decimal

QTY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")

_QTY_EXPONENT = Decimal(1).scaleb(-QTY_DECIMAL_PLACES)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an incoming quantity to Decimal.

    Floats are rejected: most decimal quantities have no exact binary form.

    Raises:
        TypeError: If value is a float, bool or unsupported type.
        decimal.InvalidOperation: If a string is not numeric.
    """
    if isinstance(value, (bool, float)):
        raise TypeError(f"Quantities must be Decimal, int or str, not {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Unsupported quantity type: {type(value).__name__}")


def round_qty(value: Decimal) -> Decimal:
    """Quantize a base-unit quantity to QTY_DECIMAL_PLACES, half-up."""
    return value.quantize(_QTY_EXPONENT, rounding=DEFAULT_ROUNDING)
