# Overview: Fixed-point money helpers; two fractional digits, banker's rounding.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Iterable

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest amount a Numeric(15, 2) column can hold
MAX_AMOUNT = Decimal("9999999999999.99")


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def to_money(value: Any, field: str = "amount", *, allow_none: bool = False) -> Decimal | None:
    """
    Coerce client input into a two-digit Decimal.

    Floats go through their shortest repr so 0.1 stays 0.10.
    Booleans are rejected even though they are ints.
    """
    if value is None:
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    # quantize traps once the digits outrun the context precision
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum amount")
    amount = quantize(amount)
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum amount")
    return amount


def mul(a: Decimal, b) -> Decimal:
    """Multiply and round to cents immediately."""
    product = Decimal(a) * Decimal(b)
    if abs(product) > MAX_AMOUNT:
        raise ValidationError("amount exceeds the maximum amount", {"value": str(a), "factor": str(b)})
    return quantize(product)


def total(values: Iterable[Decimal]) -> Decimal:
    return quantize(sum((Decimal(v) for v in values), ZERO))


def as_str(value: Decimal | None) -> str | None:
    """Serialize money for JSON without losing precision."""
    if value is None:
        return None
    return str(quantize(Decimal(value)))
