"""Tests for GST computations."""

from decimal import Decimal

import pytest

from fleetledger_core.models import ExpenseCategory
from fleetledger_core.tax import (
    TaxBreakdown,
    TaxField,
    gross_from_net_and_rate,
    net_from_gross,
    net_from_gross_and_manual_tax,
    recompute,
    suggest_rate,
    tax_from_gross,
    tax_from_net,
)
from fleetledger_core.taxonomy import TAX_SLABS


class TestSuggestRate:
    """Tests for suggest_rate."""

    @pytest.mark.parametrize(
        "category,sub_category,expected",
        [
            (ExpenseCategory.FUEL, "Diesel", "0"),
            (ExpenseCategory.FUEL, "AdBlue", "18"),
            (ExpenseCategory.MAINTENANCE, "Tire Replacement", "28"),
            (ExpenseCategory.MAINTENANCE, "Brake Service", "18"),
            (ExpenseCategory.TOLL, "Fastag", "0"),
            (ExpenseCategory.TOLL, "Cash Toll", "12"),
            (ExpenseCategory.TOLL, "Parking", "18"),
            (ExpenseCategory.DRIVER_SALARY, "Monthly", "0"),
            (ExpenseCategory.PERMIT, "National Permit", "0"),
            (ExpenseCategory.INSURANCE, "Renewal", "18"),
            (ExpenseCategory.OTHER, "Misc", "18"),
        ],
    )
    def test_table_rates(self, category, sub_category, expected):
        """Known combinations should return the table rate."""
        assert suggest_rate(category, sub_category) == Decimal(expected)

    def test_accepts_display_value(self):
        """Categories can be given by their display string."""
        assert suggest_rate("Toll", "Fastag") == Decimal("0")

    def test_unknown_category_defaults_to_18(self):
        """Unrecognized categories fall back to 18%."""
        assert suggest_rate("Catering", "Snacks") == Decimal("18")

    def test_unknown_sub_category_defaults_to_18(self):
        """A sub-category the category does not allow falls back to 18%."""
        assert suggest_rate(ExpenseCategory.FUEL, "Snacks") == Decimal("18")

    def test_custom_default(self):
        """The fallback rate can be supplied by the caller."""
        assert suggest_rate("Catering", None, default=Decimal("5")) == Decimal("5")

    def test_suggestion_is_idempotent(self):
        """Repeated calls with the same input return the same rate."""
        first = suggest_rate(ExpenseCategory.TOLL, "Cash Toll")
        second = suggest_rate(ExpenseCategory.TOLL, "Cash Toll")
        assert first == second


class TestTaxFromGross:
    """Tests for extracting tax from tax-inclusive amounts."""

    def test_18_percent_on_18000(self):
        """18000 at 18% contains 2745.76 of tax (net 15254.24)."""
        tax = tax_from_gross(18000, 18)
        assert tax == Decimal("2745.76")
        assert Decimal("18000") - tax == Decimal("15254.24")

    def test_rounds_to_two_places(self):
        """Results are quantized to paise."""
        assert tax_from_gross(100, 12) == Decimal("10.71")
        assert tax_from_gross(8000, 18) == Decimal("1220.34")

    def test_exact_rates(self):
        """Amounts that divide evenly give exact tax."""
        assert tax_from_gross(1050, 5) == Decimal("50.00")
        assert tax_from_gross(1000, 28) == Decimal("218.75")

    def test_zero_rate(self):
        """A 0% rate contains no tax."""
        assert tax_from_gross(5000, 0) == Decimal("0.00")

    def test_zero_amount(self):
        assert tax_from_gross(0, 18) == Decimal("0.00")

    def test_string_and_float_inputs(self):
        """Strings and floats are coerced without binary noise."""
        assert tax_from_gross("18000", "18") == Decimal("2745.76")
        assert tax_from_gross(18000.0, 18) == Decimal("2745.76")

    @pytest.mark.parametrize("gross", ["0", "0.01", "99.99", "1234.56", "18000", "999999.99"])
    @pytest.mark.parametrize("rate", [str(r) for r in TAX_SLABS])
    def test_net_plus_tax_reconstructs_gross(self, gross, rate):
        """net + tax == gross exactly for every slab."""
        tax = tax_from_gross(gross, rate)
        net = net_from_gross(gross, rate)
        assert net + tax == Decimal(gross)
        assert Decimal("0") <= tax <= Decimal(gross)


class TestCompanionDerivations:
    """Tests for net/gross derivations."""

    def test_tax_from_net(self):
        assert tax_from_net(1000, 18) == Decimal("180.00")
        assert tax_from_net("15254.24", 18) == Decimal("2745.76")

    def test_gross_from_net_and_rate(self):
        assert gross_from_net_and_rate(1000, 18) == Decimal("1180.00")
        assert gross_from_net_and_rate(1000, 0) == Decimal("1000.00")

    def test_net_from_gross_and_manual_tax(self):
        assert net_from_gross_and_manual_tax(1180, 100) == Decimal("1080.00")

    def test_net_from_gross(self):
        assert net_from_gross(18000, 18) == Decimal("15254.24")


class TestRecompute:
    """Tests for single-edit recomputation of a TaxBreakdown."""

    @pytest.fixture
    def breakdown(self) -> TaxBreakdown:
        return TaxBreakdown.from_gross(1180, 18)

    def test_from_gross(self, breakdown: TaxBreakdown):
        assert breakdown.gross == Decimal("1180.00")
        assert breakdown.tax == Decimal("180.00")
        assert breakdown.net == Decimal("1000.00")
        assert breakdown.manual is False

    def test_from_net(self):
        b = TaxBreakdown.from_net(1000, 5)
        assert b.tax == Decimal("50.00")
        assert b.gross == Decimal("1050.00")

    def test_edit_gross_recomputes_tax(self, breakdown: TaxBreakdown):
        """Editing gross keeps the rate and derives tax from the new gross."""
        b = recompute(breakdown, TaxField.GROSS, 2360)
        assert b.gross == Decimal("2360.00")
        assert b.tax == Decimal("360.00")
        assert b.net == Decimal("2000.00")
        assert b.rate == Decimal("18")

    def test_edit_net_recomputes_gross(self, breakdown: TaxBreakdown):
        """Editing net derives gross at the current rate."""
        b = recompute(breakdown, "net", 500)
        assert b.net == Decimal("500.00")
        assert b.tax == Decimal("90.00")
        assert b.gross == Decimal("590.00")

    def test_edit_tax_becomes_manual(self, breakdown: TaxBreakdown):
        """Typing a tax amount overrides the rate and keeps gross."""
        b = recompute(breakdown, TaxField.TAX, 100)
        assert b.manual is True
        assert b.rate == Decimal("0")
        assert b.tax == Decimal("100.00")
        assert b.gross == Decimal("1180.00")
        assert b.net == Decimal("1080.00")

    def test_manual_tax_survives_gross_edit(self, breakdown: TaxBreakdown):
        """A manual tax is never silently recomputed."""
        manual = recompute(breakdown, TaxField.TAX, 100)
        b = recompute(manual, TaxField.GROSS, 2000)
        assert b.tax == Decimal("100.00")
        assert b.net == Decimal("1900.00")
        assert b.manual is True

    def test_edit_rate_clears_manual(self, breakdown: TaxBreakdown):
        """Choosing a rate again recomputes tax from gross."""
        manual = recompute(breakdown, TaxField.TAX, 100)
        b = recompute(manual, TaxField.RATE, 28)
        assert b.manual is False
        assert b.rate == Decimal("28")
        assert b.tax == tax_from_gross(1180, 28)
        assert b.net + b.tax == b.gross

    def test_input_not_modified(self, breakdown: TaxBreakdown):
        recompute(breakdown, TaxField.GROSS, 5000)
        assert breakdown.gross == Decimal("1180.00")
