"""Currency helpers shared by models and computations."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Two amounts within this distance are the same amount (one paisa)
AMOUNT_TOLERANCE = Decimal("0.01")

MoneyLike = Union[Decimal, int, float, str]


def to_decimal(value: MoneyLike) -> Decimal:
    """Coerce a numeric or string value to Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion. Thousands separators and the rupee sign are
    stripped from strings.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("₹", "").strip()
        try:
            return Decimal(cleaned)
        except InvalidOperation as e:
            raise ValueError(f"Not a valid amount: {value!r}") from e
    return Decimal(value)


def quantize(value: MoneyLike) -> Decimal:
    """Round to two decimal places, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def amounts_match(a: MoneyLike, b: MoneyLike, tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    """True when two amounts differ by strictly less than tolerance."""
    return abs(to_decimal(a) - to_decimal(b)) < tolerance


def within_tolerance(a: MoneyLike, b: MoneyLike, tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    """True when two amounts differ by at most tolerance."""
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance
