"""GST computations for expense entries.

Pure functions deriving the tax portion of an amount from a rate, and the
other two of (net, tax, gross) from any one of them. All results are
rounded to two decimal places, half up.

Rates outside the GST slabs are accepted; the form layer is expected to
restrict input to the slabs, but every function here computes consistently
for any rate in [0, 100).
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from .money import MoneyLike, quantize, to_decimal
from .taxonomy import DEFAULT_TAX_RATE, ExpenseCategory, lookup_rate

HUNDRED = Decimal("100")


def suggest_rate(
    category: Union[ExpenseCategory, str],
    sub_category: Optional[str] = None,
    default: Decimal = DEFAULT_TAX_RATE,
) -> Decimal:
    """Suggest a GST rate for a category/sub-category.

    Args:
        category: Expense category
        sub_category: Sub-category within the category
        default: Rate for combinations the taxonomy does not know (18)

    Returns:
        Rate in percent
    """
    return lookup_rate(category, sub_category, default)


def tax_from_gross(gross: MoneyLike, rate: MoneyLike) -> Decimal:
    """Tax contained in a tax-inclusive amount.

    tax = gross - gross / (1 + rate/100)

    Example:
        >>> tax_from_gross(18000, 18)
        Decimal('2745.76')
    """
    gross = to_decimal(gross)
    rate = to_decimal(rate)
    net = gross / (1 + rate / HUNDRED)
    return quantize(gross - net)


def tax_from_net(net: MoneyLike, rate: MoneyLike) -> Decimal:
    """Tax on a tax-exclusive amount: net * rate / 100."""
    return quantize(to_decimal(net) * to_decimal(rate) / HUNDRED)


def net_from_gross(gross: MoneyLike, rate: MoneyLike) -> Decimal:
    """Tax-exclusive base of a gross amount; net + tax == gross exactly."""
    return quantize(to_decimal(gross)) - tax_from_gross(gross, rate)


def gross_from_net_and_rate(net: MoneyLike, rate: MoneyLike) -> Decimal:
    """Gross amount for a net base at the given rate."""
    return quantize(net) + tax_from_net(net, rate)


def net_from_gross_and_manual_tax(gross: MoneyLike, tax: MoneyLike) -> Decimal:
    """Net base when the tax amount was typed in by hand."""
    return quantize(gross) - quantize(tax)


# =============================================================================
# EDIT RECOMPUTATION
# =============================================================================


class TaxField(str, Enum):
    """Fields of a TaxBreakdown a user can edit directly."""

    NET = "net"
    TAX = "tax"
    GROSS = "gross"
    RATE = "rate"


class TaxBreakdown(BaseModel):
    """Net/tax/gross triple with the rate that links them.

    When manual is True the tax amount was entered directly and rate is 0.
    """

    net: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax: Decimal = Field(default=Decimal("0.00"), ge=0)
    gross: Decimal = Field(default=Decimal("0.00"), ge=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0, lt=100)
    manual: bool = False

    @field_validator("net", "tax", "gross", mode="before")
    @classmethod
    def coerce_money(cls, v):
        return quantize(v)

    @classmethod
    def from_gross(cls, gross: MoneyLike, rate: MoneyLike) -> "TaxBreakdown":
        """Breakdown of a tax-inclusive amount."""
        tax = tax_from_gross(gross, rate)
        return cls(
            gross=gross,
            tax=tax,
            net=quantize(gross) - tax,
            rate=to_decimal(rate),
        )

    @classmethod
    def from_net(cls, net: MoneyLike, rate: MoneyLike) -> "TaxBreakdown":
        """Breakdown of a tax-exclusive amount."""
        tax = tax_from_net(net, rate)
        return cls(
            net=net,
            tax=tax,
            gross=quantize(net) + tax,
            rate=to_decimal(rate),
        )


def recompute(breakdown: TaxBreakdown, edited: Union[TaxField, str], value: MoneyLike) -> TaxBreakdown:
    """Apply a single user edit and recompute exactly one dependent field.

    The edited field is authoritative. Editing gross recomputes tax from the
    rate (or, for a manual tax, recomputes net); editing net recomputes
    gross; editing tax switches to a manual override with rate 0 and
    recomputes net; editing rate clears the override and recomputes tax from
    gross.

    Args:
        breakdown: Current values
        edited: Which field the user changed
        value: New value for that field

    Returns:
        A new TaxBreakdown; the input is not modified
    """
    edited = TaxField(edited)
    value = to_decimal(value)

    if edited is TaxField.GROSS:
        if breakdown.manual:
            return breakdown.model_copy(update={
                "gross": quantize(value),
                "net": net_from_gross_and_manual_tax(value, breakdown.tax),
            })
        tax = tax_from_gross(value, breakdown.rate)
        return breakdown.model_copy(update={
            "gross": quantize(value),
            "tax": tax,
            "net": quantize(value) - tax,
        })

    if edited is TaxField.NET:
        if breakdown.manual:
            return breakdown.model_copy(update={
                "net": quantize(value),
                "gross": quantize(value) + breakdown.tax,
            })
        tax = tax_from_net(value, breakdown.rate)
        return breakdown.model_copy(update={
            "net": quantize(value),
            "tax": tax,
            "gross": quantize(value) + tax,
        })

    if edited is TaxField.TAX:
        return breakdown.model_copy(update={
            "tax": quantize(value),
            "net": net_from_gross_and_manual_tax(breakdown.gross, value),
            "rate": Decimal("0"),
            "manual": True,
        })

    tax = tax_from_gross(breakdown.gross, value)
    return breakdown.model_copy(update={
        "rate": value,
        "tax": tax,
        "net": breakdown.gross - tax,
        "manual": False,
    })
