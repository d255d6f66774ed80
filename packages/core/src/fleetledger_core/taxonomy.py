"""Expense category taxonomy and GST rate tables.

This module holds the static reference data the reconciliation engine
reads: the fixed set of fleet expense categories, the sub-categories each
one allows, and the GST rate suggested for every category/sub-category
combination.

The table is validated once at import time. An incomplete entry (a
category without sub-categories, a rate outside the slab set, a rate
override for a sub-category the category does not allow) raises
ConfigurationError before any ledger operation can run.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from .exceptions import ConfigurationError


class ExpenseCategory(str, Enum):
    """Fixed taxonomy of fleet expense categories."""

    FUEL = "Fuel"
    TOLL = "Toll"
    MAINTENANCE = "Maintenance"
    DRIVER_SALARY = "Driver Salary"
    INSURANCE = "Insurance"
    TAXES_GST = "Taxes/GST"
    PERMIT = "Permit"
    OTHER = "Other"


# =============================================================================
# GST SLABS
# =============================================================================

TAX_SLABS: tuple[Decimal, ...] = (
    Decimal("0"),
    Decimal("5"),
    Decimal("12"),
    Decimal("18"),
    Decimal("28"),
)

# Rate used for combinations the table does not recognise
DEFAULT_TAX_RATE = Decimal("18")


def is_tax_slab(rate: Decimal) -> bool:
    """Return True if rate is one of the GST slabs."""
    return Decimal(rate) in TAX_SLABS


# =============================================================================
# CATEGORY TABLE
# =============================================================================


@dataclass(frozen=True)
class CategoryDefinition:
    """Allowed sub-categories and GST rates for one expense category."""
    category: ExpenseCategory
    sub_categories: tuple[str, ...]
    default_rate: Decimal
    rate_overrides: dict[str, Decimal] = field(default_factory=dict)

    def rate_for(self, sub_category: Optional[str]) -> Decimal:
        """Suggested rate for a sub-category of this category."""
        if sub_category is None:
            return self.default_rate
        return self.rate_overrides.get(sub_category, self.default_rate)

    def allows(self, sub_category: str) -> bool:
        """Return True if sub_category belongs to this category."""
        return sub_category in self.sub_categories

    @property
    def default_sub_category(self) -> str:
        return self.sub_categories[0]


CATEGORY_TABLE: dict[ExpenseCategory, CategoryDefinition] = {
    ExpenseCategory.FUEL: CategoryDefinition(
        category=ExpenseCategory.FUEL,
        sub_categories=("Diesel", "AdBlue", "CNG", "Other"),
        default_rate=Decimal("0"),
        rate_overrides={"AdBlue": Decimal("18")},
    ),
    ExpenseCategory.TOLL: CategoryDefinition(
        category=ExpenseCategory.TOLL,
        sub_categories=("Fastag", "Cash Toll", "Parking", "Other"),
        default_rate=Decimal("12"),
        rate_overrides={"Fastag": Decimal("0"), "Parking": Decimal("18")},
    ),
    ExpenseCategory.MAINTENANCE: CategoryDefinition(
        category=ExpenseCategory.MAINTENANCE,
        sub_categories=(
            "Engine Repair",
            "Tire Replacement",
            "Oil Change",
            "Brake Service",
            "Body Work",
            "Electrical",
            "Regular Service",
            "Other",
        ),
        default_rate=Decimal("18"),
        rate_overrides={"Tire Replacement": Decimal("28")},
    ),
    ExpenseCategory.DRIVER_SALARY: CategoryDefinition(
        category=ExpenseCategory.DRIVER_SALARY,
        sub_categories=("Monthly", "Bonus", "Advance", "Allowance (Batta)", "Other"),
        default_rate=Decimal("0"),
    ),
    ExpenseCategory.INSURANCE: CategoryDefinition(
        category=ExpenseCategory.INSURANCE,
        sub_categories=("Renewal", "Third Party", "Comprehensive", "Claim Payment", "Other"),
        default_rate=Decimal("18"),
    ),
    ExpenseCategory.TAXES_GST: CategoryDefinition(
        category=ExpenseCategory.TAXES_GST,
        sub_categories=("RTO Tax", "Professional Tax", "Filing Fees", "Other"),
        default_rate=Decimal("18"),
    ),
    ExpenseCategory.PERMIT: CategoryDefinition(
        category=ExpenseCategory.PERMIT,
        sub_categories=("National Permit", "State Permit", "Fitness", "Pollution (PUC)", "Other"),
        default_rate=Decimal("0"),
    ),
    ExpenseCategory.OTHER: CategoryDefinition(
        category=ExpenseCategory.OTHER,
        sub_categories=("Misc", "Emergency", "Loan EMI", "Other"),
        default_rate=Decimal("18"),
    ),
}


def get_category(category: Union[ExpenseCategory, str]) -> Optional[CategoryDefinition]:
    """Look up a category definition.

    Args:
        category: Category enum member or its display value ("Fuel", ...)

    Returns:
        The definition, or None for an unknown category
    """
    try:
        key = ExpenseCategory(category)
    except ValueError:
        return None
    return CATEGORY_TABLE.get(key)


def allowed_sub_categories(category: Union[ExpenseCategory, str]) -> tuple[str, ...]:
    """Sub-categories allowed for a category (empty for unknown ones)."""
    definition = get_category(category)
    return definition.sub_categories if definition else ()


def is_allowed_sub_category(category: Union[ExpenseCategory, str], sub_category: str) -> bool:
    definition = get_category(category)
    return definition is not None and definition.allows(sub_category)


def default_sub_category(category: Union[ExpenseCategory, str]) -> str:
    """First allowed sub-category of a category."""
    definition = get_category(category)
    if definition is None:
        raise ConfigurationError(
            f"Unknown expense category: {category}",
            config_key=str(category),
            expected=f"One of: {[c.value for c in ExpenseCategory]}",
        )
    return definition.default_sub_category


def lookup_rate(
    category: Union[ExpenseCategory, str],
    sub_category: Optional[str],
    default: Decimal = DEFAULT_TAX_RATE,
) -> Decimal:
    """Return the table rate for a combination, or default when unknown."""
    definition = get_category(category)
    if definition is None:
        return default
    if sub_category is not None and not definition.allows(sub_category):
        return default
    return definition.rate_for(sub_category)


# =============================================================================
# VALIDATION
# =============================================================================


def validate_taxonomy(
    table: Optional[dict[ExpenseCategory, CategoryDefinition]] = None,
) -> None:
    """Check a category table for completeness.

    Every ExpenseCategory must have a definition with at least one
    sub-category, and every rate in it must be a GST slab.

    Raises:
        ConfigurationError: On the first problem found
    """
    table = CATEGORY_TABLE if table is None else table

    for category in ExpenseCategory:
        definition = table.get(category)
        if definition is None:
            raise ConfigurationError(
                f"No taxonomy entry for category {category.value}",
                config_key=category.value,
                expected="CategoryDefinition",
            )
        if definition.category is not category:
            raise ConfigurationError(
                f"Taxonomy entry for {category.value} is keyed to {definition.category.value}",
                config_key=category.value,
                actual=definition.category.value,
            )
        if not definition.sub_categories:
            raise ConfigurationError(
                f"Category {category.value} has no sub-categories",
                config_key=category.value,
                expected="At least one sub-category",
            )
        if not is_tax_slab(definition.default_rate):
            raise ConfigurationError(
                f"Default rate for {category.value} is not a GST slab",
                config_key=category.value,
                expected=f"One of {[str(r) for r in TAX_SLABS]}",
                actual=str(definition.default_rate),
            )
        for sub_category, rate in definition.rate_overrides.items():
            if not definition.allows(sub_category):
                raise ConfigurationError(
                    f"Rate override for unknown sub-category {category.value}/{sub_category}",
                    config_key=f"{category.value}/{sub_category}",
                    expected=f"One of {list(definition.sub_categories)}",
                )
            if not is_tax_slab(rate):
                raise ConfigurationError(
                    f"Rate for {category.value}/{sub_category} is not a GST slab",
                    config_key=f"{category.value}/{sub_category}",
                    actual=str(rate),
                )


validate_taxonomy()
