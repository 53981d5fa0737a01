from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Coerces DB/JSON numerics (Decimal, float, int, str) to a 2dp Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Any, rate: Decimal) -> Decimal:
    """`rate` is a fraction in [0, 1], e.g. Decimal('0.20')."""
    return to_money(to_money(amount) * rate)
