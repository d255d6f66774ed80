"""Tests for the category taxonomy and its validation."""

from decimal import Decimal

import pytest

from fleetledger_core.exceptions import ConfigurationError
from fleetledger_core.taxonomy import (
    CATEGORY_TABLE,
    CategoryDefinition,
    ExpenseCategory,
    allowed_sub_categories,
    default_sub_category,
    is_allowed_sub_category,
    is_tax_slab,
    validate_taxonomy,
)


class TestCategoryTable:
    """Tests for the static category table."""

    def test_every_category_has_an_entry(self):
        for category in ExpenseCategory:
            assert category in CATEGORY_TABLE

    def test_category_is_string_enum(self):
        assert ExpenseCategory.DRIVER_SALARY == "Driver Salary"
        assert ExpenseCategory("Taxes/GST") is ExpenseCategory.TAXES_GST

    def test_allowed_sub_categories(self):
        assert allowed_sub_categories("Fuel") == ("Diesel", "AdBlue", "CNG", "Other")
        assert allowed_sub_categories("Unknown") == ()

    def test_is_allowed_sub_category(self):
        assert is_allowed_sub_category(ExpenseCategory.TOLL, "Fastag")
        assert not is_allowed_sub_category(ExpenseCategory.TOLL, "Diesel")
        assert not is_allowed_sub_category("Unknown", "Diesel")

    def test_default_sub_category(self):
        assert default_sub_category(ExpenseCategory.FUEL) == "Diesel"
        assert default_sub_category("Other") == "Misc"

    def test_default_sub_category_unknown_category(self):
        with pytest.raises(ConfigurationError):
            default_sub_category("Unknown")

    def test_tax_slabs(self):
        assert is_tax_slab(Decimal("28"))
        assert is_tax_slab(Decimal("0"))
        assert not is_tax_slab(Decimal("3"))


class TestValidateTaxonomy:
    """Tests for startup validation of category tables."""

    def test_shipped_table_is_valid(self):
        validate_taxonomy()

    def test_missing_category_rejected(self):
        table = dict(CATEGORY_TABLE)
        del table[ExpenseCategory.PERMIT]

        with pytest.raises(ConfigurationError) as exc_info:
            validate_taxonomy(table)
        assert exc_info.value.config_key == "Permit"
        assert exc_info.value.recoverable is False

    def test_empty_sub_categories_rejected(self):
        table = dict(CATEGORY_TABLE)
        table[ExpenseCategory.OTHER] = CategoryDefinition(
            category=ExpenseCategory.OTHER,
            sub_categories=(),
            default_rate=Decimal("18"),
        )
        with pytest.raises(ConfigurationError):
            validate_taxonomy(table)

    def test_non_slab_rate_rejected(self):
        table = dict(CATEGORY_TABLE)
        table[ExpenseCategory.FUEL] = CategoryDefinition(
            category=ExpenseCategory.FUEL,
            sub_categories=("Diesel",),
            default_rate=Decimal("0"),
            rate_overrides={"Diesel": Decimal("7")},
        )
        with pytest.raises(ConfigurationError):
            validate_taxonomy(table)

    def test_override_for_unknown_sub_category_rejected(self):
        table = dict(CATEGORY_TABLE)
        table[ExpenseCategory.FUEL] = CategoryDefinition(
            category=ExpenseCategory.FUEL,
            sub_categories=("Diesel",),
            default_rate=Decimal("0"),
            rate_overrides={"Petrol": Decimal("18")},
        )
        with pytest.raises(ConfigurationError):
            validate_taxonomy(table)

    def test_mismatched_key_rejected(self):
        table = dict(CATEGORY_TABLE)
        table[ExpenseCategory.TOLL] = CATEGORY_TABLE[ExpenseCategory.FUEL]
        with pytest.raises(ConfigurationError):
            validate_taxonomy(table)
