"""
Money helpers.

All amounts are Decimal. Two rounding granularities are used: whole currency
units for the percentage split, cents for guarantee and top-up figures.
Both round half up.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from staffshift.core.errors import NegativeAmountError


ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNIT = Decimal("1")
CENT = Decimal("0.01")


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Lenient conversion: None, garbage, NaN and infinities become `default`."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def round_units(value: Decimal) -> Decimal:
    return Decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def round_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def non_negative(value: Any, field: str) -> Decimal:
    """Strict boundary check for submitted amounts. Missing means zero."""
    if value is None:
        return ZERO
    amount = to_decimal(value)
    if amount is None:
        raise NegativeAmountError(f"{field} must be a finite number", field=field)
    if amount < ZERO:
        raise NegativeAmountError(f"{field} cannot be negative", field=field, value=str(amount))
    return amount
