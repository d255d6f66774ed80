"""Monthly input tax credit (ITC) summary.

Totals the GST paid on expenses for one calendar month, broken down by
GST slab. Only expenses with a positive tax amount count toward the
summary. Expenses whose tax was entered by hand carry rate 0; their tax is
reported under the 18% slab.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Union

from pydantic import BaseModel, Field, field_validator

from .models import Expense
from .money import ZERO
from .taxonomy import DEFAULT_TAX_RATE, TAX_SLABS


class GstSummary(BaseModel):
    """GST paid on expenses for one month."""

    period: str = Field(description="Month in YYYY-MM form")
    total_itc: Decimal = ZERO
    taxable_amount: Decimal = Field(default=ZERO, description="Net amount of taxed expenses")
    count: int = 0
    itc_by_rate: dict[Decimal, Decimal] = Field(default_factory=dict)

    @field_validator("period")
    @classmethod
    def validate_period(cls, v: str) -> str:
        parse_period(v)
        return v


def parse_period(period: str) -> tuple[int, int]:
    """Parse "YYYY-MM" into (year, month).

    Raises:
        ValueError: If the period is malformed
    """
    try:
        year_str, month_str = period.split("-")
        year, month = int(year_str), int(month_str)
    except ValueError as e:
        raise ValueError(f"Invalid period {period!r}; expected YYYY-MM") from e
    if not 1 <= month <= 12 or len(year_str) != 4:
        raise ValueError(f"Invalid period {period!r}; expected YYYY-MM")
    return year, month


def period_of(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def summarize_itc(expenses: Iterable[Expense], period: Union[str, date]) -> GstSummary:
    """Summarize input tax credit for a month.

    Args:
        expenses: Ledger expenses
        period: Month as "YYYY-MM" or any date within it

    Returns:
        GstSummary with totals and a per-slab breakdown (slabs above 0 are
        always present)
    """
    if isinstance(period, date):
        period = period_of(period)
    year, month = parse_period(period)

    by_rate: dict[Decimal, Decimal] = defaultdict(lambda: ZERO)
    for slab in TAX_SLABS:
        if slab > 0:
            by_rate[slab] = ZERO

    total = ZERO
    taxable = ZERO
    count = 0
    for expense in expenses:
        if expense.date.year != year or expense.date.month != month:
            continue
        if expense.tax_amount <= 0:
            continue
        total += expense.tax_amount
        taxable += expense.amount - expense.tax_amount
        count += 1
        rate = expense.tax_rate or DEFAULT_TAX_RATE
        by_rate[rate] += expense.tax_amount

    return GstSummary(
        period=period,
        total_itc=total,
        taxable_amount=taxable,
        count=count,
        itc_by_rate=dict(by_rate),
    )
