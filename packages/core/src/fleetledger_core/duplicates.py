"""Duplicate ledger entry detection.

Expenses with the same date, amount and vendor (or description when no
vendor is recorded) are probable double entries, typically a manual entry
made before the bank line arrived and a second one created from the feed.
The detector only surfaces groups; nothing is deleted unless the caller
asks for a merge or delete.
"""

from collections import defaultdict
from typing import Iterable

import structlog

from .exceptions import ReconciliationError
from .models import DuplicateGroup, DuplicateSignature, Expense

logger = structlog.get_logger()


def normalize(text: str) -> str:
    """Lower-case and trim a vendor or description."""
    return text.lower().strip()


def signature(expense: Expense) -> DuplicateSignature:
    """Content signature of an expense: (date, amount, vendor)."""
    return DuplicateSignature(
        date=expense.date,
        amount=expense.amount,
        vendor=normalize(expense.vendor or expense.description or ""),
    )


class DuplicateDetector:
    """Find and resolve probable duplicate expenses.

    Dismissed signatures are remembered for the lifetime of the detector
    only; nothing is persisted.
    """

    def __init__(self):
        self._dismissed: set[DuplicateSignature] = set()

    @property
    def dismissed(self) -> frozenset[DuplicateSignature]:
        return frozenset(self._dismissed)

    def find_groups(
        self,
        expenses: Iterable[Expense],
        include_dismissed: bool = False,
    ) -> list[DuplicateGroup]:
        """Partition expenses by signature and keep groups of two or more.

        Groups appear in the order their first member appears in the input,
        and members keep input order, so the result is stable for a fixed
        input.

        Args:
            expenses: Ledger expenses
            include_dismissed: Also return groups whose signature was dismissed

        Returns:
            Duplicate groups
        """
        buckets: dict[DuplicateSignature, list[Expense]] = defaultdict(list)
        for expense in expenses:
            buckets[signature(expense)].append(expense)

        groups = [
            DuplicateGroup(signature=sig, expenses=members)
            for sig, members in buckets.items()
            if len(members) > 1 and (include_dismissed or sig not in self._dismissed)
        ]
        if groups:
            logger.info(
                "duplicate_groups_found",
                groups=len(groups),
                expenses=sum(len(g) for g in groups),
            )
        return groups

    def dismiss(self, sig: DuplicateSignature) -> None:
        """Stop surfacing a signature as a duplicate group."""
        self._dismissed.add(sig)
        logger.info("duplicate_dismissed", date=str(sig.date), amount=str(sig.amount), vendor=sig.vendor)

    def restore(self, sig: DuplicateSignature) -> None:
        """Undo a dismissal."""
        self._dismissed.discard(sig)

    def merge(self, expenses: Iterable[Expense], keep_id: str, drop_id: str) -> list[Expense]:
        """Keep one record of a duplicate pair and remove the other.

        The kept record takes over the dropped record's bank links and tags
        so that no reconciliation is lost. All other fields of the kept
        record win.

        Returns:
            The expense list without the dropped record

        Raises:
            ReconciliationError: If either id is missing or both are the same
        """
        if keep_id == drop_id:
            raise ReconciliationError(f"Cannot merge expense {keep_id} into itself")

        expenses = list(expenses)
        by_id = {e.id: e for e in expenses}
        for expense_id in (keep_id, drop_id):
            if expense_id not in by_id:
                raise ReconciliationError(f"Expense {expense_id} not found")

        keep, drop = by_id[keep_id], by_id[drop_id]
        linked = list(dict.fromkeys(keep.linked_bank_txn_ids + drop.linked_bank_txn_ids))
        merged = keep.model_copy(update={
            "linked_bank_txn_ids": linked,
            "is_bank_transaction": keep.is_bank_transaction or drop.is_bank_transaction,
            "tags": list(dict.fromkeys(keep.tags + drop.tags)),
        })

        logger.info("expenses_merged", keep_id=keep_id, drop_id=drop_id)
        return [merged if e.id == keep_id else e for e in expenses if e.id != drop_id]

    def delete(self, expenses: Iterable[Expense], expense_id: str) -> list[Expense]:
        """Remove an expense by identifier.

        Raises:
            ReconciliationError: If no expense has that identifier
        """
        expenses = list(expenses)
        remaining = [e for e in expenses if e.id != expense_id]
        if len(remaining) == len(expenses):
            raise ReconciliationError(f"Expense {expense_id} not found")
        logger.info("expense_deleted", expense_id=expense_id)
        return remaining
