"""Bank transaction matching and quick-create.

Proposes correspondences between pending bank debits and manually entered
expenses, links them, turns a bank line straight into an expense, or
excludes it as personal/non-business spending.

Matching is exact on amount (within the configured tolerance, one paisa by
default). Date and vendor similarity are not considered.

Every operation returns new records and leaves its inputs untouched.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Generic, Iterable, Optional, TypeVar

import structlog

from .config import FleetLedgerConfig, get_config
from .exceptions import ReconciliationError
from .models import (
    BankTransaction,
    BankTransactionStatus,
    Expense,
    ExpenseCategory,
    PaymentMethod,
)
from .models.ledger import new_expense_id
from .money import ZERO, amounts_match, to_decimal
from .tax import suggest_rate, tax_from_gross
from .taxonomy import default_sub_category, is_allowed_sub_category
from .transitions import ensure_transition, transition

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class BulkResult(Generic[T]):
    """Outcome of a bulk operation.

    Items succeed or fail independently; a failure never rolls back the
    items that succeeded.
    """
    succeeded: list[T] = field(default_factory=list)
    failures: list[tuple[str, ReconciliationError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_ids(self) -> list[str]:
        return [txn_id for txn_id, _ in self.failures]


class BankTransactionMatcher:
    """Match, link, quick-create and exclude bank feed lines.

    Args:
        config: Engine configuration (default: process-wide config)
        id_factory: Callable producing identifiers for new expenses
    """

    def __init__(
        self,
        config: Optional[FleetLedgerConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.config = config or get_config()
        self._new_id = id_factory or new_expense_id

    # -------------------------------------------------------------------------
    # Candidate search
    # -------------------------------------------------------------------------

    def find_candidates(
        self,
        txn: BankTransaction,
        expenses: Iterable[Expense],
    ) -> list[Expense]:
        """Manual expenses whose amount equals the transaction's.

        Args:
            txn: Bank transaction to match
            expenses: Ledger expenses, in display order

        Returns:
            Expenses not yet originating from the bank, in input order
        """
        tolerance = self.config.amount_tolerance
        return [
            e for e in expenses
            if not e.is_bank_transaction and amounts_match(e.amount, txn.amount, tolerance)
        ]

    def find_transactions(
        self,
        expense: Expense,
        transactions: Iterable[BankTransaction],
    ) -> list[BankTransaction]:
        """Pending bank transactions whose amount equals the expense's."""
        tolerance = self.config.amount_tolerance
        return [
            t for t in transactions
            if t.is_pending and amounts_match(t.amount, expense.amount, tolerance)
        ]

    def suggest_matches(
        self,
        transactions: Iterable[BankTransaction],
        expenses: Iterable[Expense],
    ) -> list[BankTransaction]:
        """Fill potential_match_id on pending transactions.

        The first candidate in ledger order is suggested. Transactions that
        are not pending, or that have no candidate, are returned unchanged.
        Status is never modified.
        """
        expenses = list(expenses)
        result = []
        for txn in transactions:
            if txn.is_pending:
                candidates = self.find_candidates(txn, expenses)
                if candidates:
                    txn = txn.model_copy(update={"potential_match_id": candidates[0].id})
            result.append(txn)
        return result

    # -------------------------------------------------------------------------
    # Single-item operations
    # -------------------------------------------------------------------------

    def link_existing(
        self,
        txn: BankTransaction,
        expense: Expense,
    ) -> tuple[Expense, BankTransaction]:
        """Link a pending transaction to an existing expense.

        Returns:
            (updated expense, updated transaction)

        Raises:
            InvalidStateTransition: If the transaction is not Pending
        """
        linked_txn = transition(txn, BankTransactionStatus.LINKED)

        linked_ids = list(expense.linked_bank_txn_ids)
        if txn.id not in linked_ids:
            linked_ids.append(txn.id)
        updated = expense.model_copy(update={
            "is_bank_transaction": True,
            "linked_bank_txn_ids": linked_ids,
        })

        logger.info(
            "transaction_linked",
            transaction_id=txn.id,
            expense_id=expense.id,
            amount=str(txn.amount),
        )
        return updated, linked_txn

    def quick_create(
        self,
        txn: BankTransaction,
        category: ExpenseCategory = ExpenseCategory.FUEL,
        sub_category: Optional[str] = None,
        vehicle_id: str = "",
        expense_date: Optional[date] = None,
    ) -> tuple[Expense, BankTransaction]:
        """Create an expense straight from a bank transaction.

        The new expense carries the full transaction amount, takes its
        description and vendor from the bank narration, and gets the GST
        suggested for the chosen category.

        Returns:
            (new expense, linked transaction)

        Raises:
            InvalidStateTransition: If the transaction is not Pending
            ReconciliationError: Unknown category, or a sub-category the
                category does not allow
        """
        ensure_transition(txn, BankTransactionStatus.LINKED)

        try:
            category = ExpenseCategory(category)
        except ValueError as e:
            raise ReconciliationError(
                f"Unknown expense category: {category}",
                transaction_id=txn.id,
            ) from e
        sub_category = sub_category or default_sub_category(category)
        if not is_allowed_sub_category(category, sub_category):
            raise ReconciliationError(
                f"Sub-category {sub_category!r} is not allowed for {category.value}",
                transaction_id=txn.id,
            )
        rate = suggest_rate(category, sub_category, self.config.default_tax_rate)

        expense = Expense(
            id=self._new_id(),
            date=expense_date or txn.date,
            amount=txn.amount,
            category=category,
            sub_category=sub_category,
            vehicle_id=vehicle_id,
            description=txn.description,
            vendor=txn.description,
            tax_amount=tax_from_gross(txn.amount, rate),
            tax_rate=rate,
            payment_method=PaymentMethod.BANK_TRANSFER,
            is_bank_transaction=True,
            linked_bank_txn_ids=[txn.id],
        )
        linked_txn = transition(txn, BankTransactionStatus.LINKED)

        logger.info(
            "transaction_quick_created",
            transaction_id=txn.id,
            expense_id=expense.id,
            category=category.value,
            tax_rate=str(rate),
        )
        return expense, linked_txn

    def exclude(self, txn: BankTransaction) -> BankTransaction:
        """Mark a pending transaction as personal/non-business.

        Raises:
            InvalidStateTransition: If the transaction is not Pending
        """
        excluded = transition(txn, BankTransactionStatus.EXCLUDED)
        logger.info("transaction_excluded", transaction_id=txn.id, amount=str(txn.amount))
        return excluded

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    def bulk_link(
        self,
        pairs: Iterable[tuple[BankTransaction, Expense]],
    ) -> BulkResult[tuple[Expense, BankTransaction]]:
        """Link each (transaction, expense) pair independently."""
        result: BulkResult[tuple[Expense, BankTransaction]] = BulkResult()
        for txn, expense in pairs:
            try:
                result.succeeded.append(self.link_existing(txn, expense))
            except ReconciliationError as e:
                result.failures.append((txn.id, e))
        self._log_bulk("bulk_link", result)
        return result

    def bulk_quick_create(
        self,
        transactions: Iterable[BankTransaction],
        category: ExpenseCategory = ExpenseCategory.FUEL,
        sub_category: Optional[str] = None,
        vehicle_id: str = "",
    ) -> BulkResult[tuple[Expense, BankTransaction]]:
        """Quick-create an expense for each selected transaction."""
        result: BulkResult[tuple[Expense, BankTransaction]] = BulkResult()
        for txn in transactions:
            try:
                result.succeeded.append(
                    self.quick_create(txn, category, sub_category, vehicle_id)
                )
            except ReconciliationError as e:
                result.failures.append((txn.id, e))
        self._log_bulk("bulk_quick_create", result)
        return result

    def bulk_exclude(
        self,
        transactions: Iterable[BankTransaction],
    ) -> BulkResult[BankTransaction]:
        """Exclude each selected transaction independently."""
        result: BulkResult[BankTransaction] = BulkResult()
        for txn in transactions:
            try:
                result.succeeded.append(self.exclude(txn))
            except ReconciliationError as e:
                result.failures.append((txn.id, e))
        self._log_bulk("bulk_exclude", result)
        return result

    def _log_bulk(self, operation: str, result: BulkResult) -> None:
        if result.failures:
            logger.warning(
                f"{operation}_partial",
                succeeded=len(result.succeeded),
                failed=result.failed_ids,
            )
        else:
            logger.info(f"{operation}_complete", succeeded=len(result.succeeded))


# =============================================================================
# BANK FEED VIEWS
# =============================================================================


def filter_transactions(
    transactions: Iterable[BankTransaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    include_excluded: bool = False,
) -> list[BankTransaction]:
    """Filter a bank feed by date and amount range, newest first.

    Bounds are inclusive. Excluded transactions are hidden unless
    include_excluded is True.
    """
    out = []
    for txn in transactions:
        if txn.status == BankTransactionStatus.EXCLUDED and not include_excluded:
            continue
        if start and txn.date < start:
            continue
        if end and txn.date > end:
            continue
        if min_amount is not None and txn.amount < to_decimal(min_amount):
            continue
        if max_amount is not None and txn.amount > to_decimal(max_amount):
            continue
        out.append(txn)
    # stable sort keeps feed order among same-day lines
    return sorted(out, key=lambda t: t.date, reverse=True)


def unlinked_exposure(transactions: Iterable[BankTransaction]) -> Decimal:
    """Total amount of bank debits still pending reconciliation."""
    return sum((t.amount for t in transactions if t.is_pending), ZERO)
