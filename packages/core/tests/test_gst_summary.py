"""Tests for the monthly input tax credit summary."""

from datetime import date
from decimal import Decimal

import pytest

from fleetledger_core.gst_summary import parse_period, period_of, summarize_itc

from conftest import make_expense


@pytest.fixture
def expenses():
    return [
        make_expense("E1", amount="1180", tax_amount="180", tax_rate=18, date=date(2024, 5, 2)),
        make_expense("E2", amount="1050", tax_amount="50", tax_rate=5, date=date(2024, 5, 9),
                     category="Toll", sub_category="Parking"),
        # manual tax override: rate 0, counted under 18%
        make_expense("E3", amount="1000", tax_amount="100", tax_rate=0, date=date(2024, 5, 31)),
        # zero-rated diesel
        make_expense("E4", amount="15000", date=date(2024, 5, 15),
                     category="Fuel", sub_category="Diesel"),
        make_expense("E5", amount="2360", tax_amount="360", tax_rate=18, date=date(2024, 6, 1)),
    ]


class TestSummarizeItc:
    """Test suite for summarize_itc."""

    def test_month_totals(self, expenses):
        summary = summarize_itc(expenses, "2024-05")

        assert summary.period == "2024-05"
        assert summary.total_itc == Decimal("330.00")
        assert summary.taxable_amount == Decimal("2900.00")
        assert summary.count == 3

    def test_breakdown_by_slab(self, expenses):
        summary = summarize_itc(expenses, "2024-05")

        assert summary.itc_by_rate == {
            Decimal("5"): Decimal("50.00"),
            Decimal("12"): Decimal("0.00"),
            Decimal("18"): Decimal("280.00"),
            Decimal("28"): Decimal("0.00"),
        }

    def test_period_from_date(self, expenses):
        summary = summarize_itc(expenses, date(2024, 6, 20))
        assert summary.period == "2024-06"
        assert summary.total_itc == Decimal("360.00")

    def test_empty_month(self, expenses):
        summary = summarize_itc(expenses, "2023-01")
        assert summary.total_itc == Decimal("0.00")
        assert summary.count == 0
        assert set(summary.itc_by_rate) == {Decimal("5"), Decimal("12"), Decimal("18"), Decimal("28")}


class TestPeriods:
    def test_parse_period(self):
        assert parse_period("2024-05") == (2024, 5)

    @pytest.mark.parametrize("bad", ["2024-13", "24-05", "2024/05", "May 2024", "2024-00"])
    def test_invalid_period(self, bad):
        with pytest.raises(ValueError):
            parse_period(bad)

    def test_period_of(self):
        assert period_of(date(2024, 1, 31)) == "2024-01"
