"""Fixed-point helpers for currency amounts and share percentages."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
ONE = Decimal("1")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert user input to Decimal without binary float artifacts.

    Floats go through ``str`` so ``0.33`` stays ``Decimal("0.33")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a decimal value: {value!r}")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e


def round_half_up(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def amount_to_cents(amount: Decimal | int | float | str) -> int:
    """Convert a currency amount to integer cents (rounded half-up)."""
    return int(round_half_up(to_decimal(amount)) * 100)


def cents_to_amount(cents: int) -> Decimal:
    """Convert integer cents to a scale-2 Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)
