"""Money parsing and rounding helpers"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def parse_amount(value: Any) -> Decimal:
    """
    Lenient numeric parsing for amounts and percentages.

    Empty, non-numeric or non-finite input resolves to 0 instead of raising.
    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        parsed = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return ZERO
    return parsed if parsed.is_finite() else ZERO


def round_money(value: Decimal) -> Decimal:
    """Round half-up to cents"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    return amount * percentage / Decimal("100")
