from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from rfq_exchange.core.errors import InvalidInput

# Scales of the Numeric columns the parsed values land in
PRICE_PLACES = 2
QUANTITY_PLACES = 4


def parse_decimal(value: Any, field: str, *, places: int) -> Decimal:
    """
    Parse a caller-supplied amount.

    Rejects non-numbers, NaN/Infinity and values finer than `places` decimal
    places, so what is stored is exactly what totals were computed from.
    """
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{field} must be a number.")
    if not d.is_finite():
        raise InvalidInput(f"{field} must be a finite number.")
    if d.as_tuple().exponent < -places:
        raise InvalidInput(f"{field} allows at most {places} decimal places.")
    return d
