"""Tests for duplicate expense detection and resolution."""

from datetime import date
from decimal import Decimal

import pytest

from fleetledger_core.duplicates import DuplicateDetector, signature
from fleetledger_core.exceptions import ReconciliationError
from fleetledger_core.models import ExpenseCategory

from conftest import make_expense


def fuel_expense(expense_id: str, vendor="HPCL Station", amount="15000", **overrides):
    data = {
        "date": date(2024, 5, 15),
        "category": ExpenseCategory.FUEL,
        "sub_category": "Diesel",
        "vendor": vendor,
        "description": "Diesel fill",
    }
    data.update(overrides)
    return make_expense(expense_id, amount=amount, **data)


@pytest.fixture
def detector() -> DuplicateDetector:
    return DuplicateDetector()


class TestSignature:
    def test_vendor_normalized(self):
        a = fuel_expense("E1", vendor="HPCL Station")
        b = fuel_expense("E2", vendor="  hpcl station ")
        assert signature(a) == signature(b)
        assert signature(a).vendor == "hpcl station"

    def test_falls_back_to_description(self):
        expense = fuel_expense("E1", vendor=None, description="Diesel Fill ")
        assert signature(expense).vendor == "diesel fill"

    def test_empty_when_no_vendor_or_description(self):
        expense = fuel_expense("E1", vendor=None, description="")
        assert signature(expense).vendor == ""


class TestFindGroups:
    """Test suite for duplicate grouping."""

    def test_identical_entries_grouped(self, detector):
        """Same date, amount and vendor form one group of two."""
        expenses = [fuel_expense("E1"), fuel_expense("E2")]

        groups = detector.find_groups(expenses)

        assert len(groups) == 1
        assert groups[0].expense_ids == ["E1", "E2"]
        assert groups[0].signature.amount == Decimal("15000.00")

    def test_different_date_not_grouped(self, detector):
        expenses = [fuel_expense("E1"), fuel_expense("E2", date=date(2024, 5, 16))]
        assert detector.find_groups(expenses) == []

    def test_different_amount_not_grouped(self, detector):
        expenses = [fuel_expense("E1"), fuel_expense("E2", amount="15000.01")]
        assert detector.find_groups(expenses) == []

    def test_groups_in_first_seen_order(self, detector):
        expenses = [
            make_expense("M1"),
            fuel_expense("F1"),
            make_expense("M2"),
            fuel_expense("F2"),
            fuel_expense("F3"),
            make_expense("X1", amount="1"),
        ]

        groups = detector.find_groups(expenses)

        assert [g.expense_ids for g in groups] == [["M1", "M2"], ["F1", "F2", "F3"]]

    def test_deterministic(self, detector):
        expenses = [fuel_expense("E1"), make_expense("E2"), fuel_expense("E3"), make_expense("E4")]
        first = [g.expense_ids for g in detector.find_groups(expenses)]
        second = [g.expense_ids for g in detector.find_groups(expenses)]
        assert first == second

    def test_no_expenses(self, detector):
        assert detector.find_groups([]) == []


class TestDismiss:
    def test_dismissed_group_hidden(self, detector):
        expenses = [fuel_expense("E1"), fuel_expense("E2")]
        (group,) = detector.find_groups(expenses)

        detector.dismiss(group.signature)

        assert detector.find_groups(expenses) == []
        assert len(detector.find_groups(expenses, include_dismissed=True)) == 1
        assert group.signature in detector.dismissed

    def test_restore(self, detector):
        expenses = [fuel_expense("E1"), fuel_expense("E2")]
        (group,) = detector.find_groups(expenses)
        detector.dismiss(group.signature)

        detector.restore(group.signature)

        assert len(detector.find_groups(expenses)) == 1

    def test_dismissal_not_shared_between_detectors(self, detector):
        expenses = [fuel_expense("E1"), fuel_expense("E2")]
        detector.dismiss(signature(expenses[0]))
        assert len(DuplicateDetector().find_groups(expenses)) == 1


class TestMergeAndDelete:
    """Test suite for resolving duplicates."""

    def test_merge_keeps_links(self, detector):
        manual = fuel_expense("E1", tags=["trip-42"])
        from_bank = fuel_expense(
            "E2", is_bank_transaction=True, linked_bank_txn_ids=["BT1"], tags=["imported"]
        )
        other = make_expense("E3")

        result = detector.merge([manual, from_bank, other], keep_id="E1", drop_id="E2")

        assert [e.id for e in result] == ["E1", "E3"]
        kept = result[0]
        assert kept.linked_bank_txn_ids == ["BT1"]
        assert kept.is_bank_transaction is True
        assert kept.tags == ["trip-42", "imported"]

    def test_merge_into_itself_rejected(self, detector):
        with pytest.raises(ReconciliationError):
            detector.merge([fuel_expense("E1")], "E1", "E1")

    def test_merge_missing_rejected(self, detector):
        with pytest.raises(ReconciliationError, match="E9"):
            detector.merge([fuel_expense("E1")], "E1", "E9")

    def test_delete(self, detector):
        result = detector.delete([fuel_expense("E1"), fuel_expense("E2")], "E1")
        assert [e.id for e in result] == ["E2"]

    def test_delete_missing_rejected(self, detector):
        with pytest.raises(ReconciliationError):
            detector.delete([fuel_expense("E1")], "E9")
