"""Ledger state and the command reducer.

The ledger is an immutable snapshot of expenses and bank transactions.
Changes are described as commands and applied with Ledger.apply(), which
returns a new snapshot and the events produced; the input snapshot is
never modified. A rejected command raises a ReconciliationError and
produces no new state.

Example:
    ledger = Ledger()
    state = LedgerState(expenses=expenses, bank_transactions=feed)
    state, events = ledger.apply(state, LinkExisting(transaction_id="BT3", expense_id="E3"))
"""

from decimal import Decimal
from typing import Callable, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .config import FleetLedgerConfig, get_config
from .duplicates import DuplicateDetector
from .exceptions import ImbalanceError, ReconciliationError
from .matcher import BankTransactionMatcher
from .models import (
    BankTransaction,
    BankTransactionStatus,
    EventKind,
    Expense,
    ExpenseCategory,
    LedgerEvent,
    SplitLine,
)
from .models.ledger import new_expense_id
from .money import ZERO, within_tolerance
from .splitter import SplitSession

logger = structlog.get_logger()


class LedgerState(BaseModel):
    """Immutable snapshot of the expense ledger and the bank feed."""

    model_config = ConfigDict(frozen=True)

    expenses: tuple[Expense, ...] = ()
    bank_transactions: tuple[BankTransaction, ...] = ()

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        for expense in self.expenses:
            if expense.id == expense_id:
                return expense
        return None

    def get_transaction(self, transaction_id: str) -> Optional[BankTransaction]:
        for txn in self.bank_transactions:
            if txn.id == transaction_id:
                return txn
        return None

    def expenses_for(self, transaction_id: str) -> list[Expense]:
        """Expenses referencing a bank transaction."""
        return [e for e in self.expenses if transaction_id in e.linked_bank_txn_ids]

    @property
    def pending_transactions(self) -> list[BankTransaction]:
        return [t for t in self.bank_transactions if t.is_pending]


# =============================================================================
# COMMANDS
# =============================================================================


class AddExpense(BaseModel):
    """Record a new expense."""
    expense: Expense


class UpdateExpense(BaseModel):
    """Replace an existing expense (matched by id) with an edited copy."""
    expense: Expense


class DeleteExpense(BaseModel):
    expense_id: str


class LinkExisting(BaseModel):
    """Link a pending bank transaction to a manual expense."""
    transaction_id: str
    expense_id: str


class QuickCreate(BaseModel):
    """Create an expense straight from a pending bank transaction."""
    transaction_id: str
    category: ExpenseCategory = ExpenseCategory.FUEL
    sub_category: Optional[str] = None
    vehicle_id: str = ""


class ExcludeTransaction(BaseModel):
    """Mark a pending bank transaction as personal/non-business."""
    transaction_id: str


class CommitSplit(BaseModel):
    """Materialize split lines for a pending bank transaction."""
    transaction_id: str
    lines: list[SplitLine] = Field(min_length=1)


class MergeExpenses(BaseModel):
    """Resolve a duplicate pair by keeping one record."""
    keep_id: str
    drop_id: str


Command = Union[
    AddExpense,
    UpdateExpense,
    DeleteExpense,
    LinkExisting,
    QuickCreate,
    ExcludeTransaction,
    CommitSplit,
    MergeExpenses,
]


# =============================================================================
# REDUCER
# =============================================================================


class Ledger:
    """Apply reconciliation commands to ledger snapshots.

    Args:
        config: Engine configuration (default: process-wide config)
        id_factory: Callable producing identifiers for new expenses
        detector: Duplicate detector used for merges
    """

    def __init__(
        self,
        config: Optional[FleetLedgerConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
        detector: Optional[DuplicateDetector] = None,
    ):
        self.config = config or get_config()
        self._new_id = id_factory or new_expense_id
        self.matcher = BankTransactionMatcher(config=self.config, id_factory=self._new_id)
        self.detector = detector or DuplicateDetector()
        self._handlers = {
            AddExpense: self._add_expense,
            UpdateExpense: self._update_expense,
            DeleteExpense: self._delete_expense,
            LinkExisting: self._link_existing,
            QuickCreate: self._quick_create,
            ExcludeTransaction: self._exclude,
            CommitSplit: self._commit_split,
            MergeExpenses: self._merge,
        }

    def apply(self, state: LedgerState, command: Command) -> tuple[LedgerState, list[LedgerEvent]]:
        """Apply one command.

        Returns:
            (new state, events produced)

        Raises:
            ReconciliationError: If the command is rejected; state is unchanged
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise ReconciliationError(f"Unsupported command: {type(command).__name__}")

        new_state, events = handler(state, command)
        for event in events:
            logger.debug("ledger_event", **event.to_log_dict())
        return new_state, events

    def apply_all(
        self,
        state: LedgerState,
        commands: list[Command],
    ) -> tuple[LedgerState, list[LedgerEvent], list[tuple[Command, ReconciliationError]]]:
        """Apply commands in order; each succeeds or fails independently.

        Returns:
            (final state, all events, rejected commands with their errors)
        """
        events: list[LedgerEvent] = []
        failures: list[tuple[Command, ReconciliationError]] = []
        for command in commands:
            try:
                state, produced = self.apply(state, command)
            except ReconciliationError as e:
                logger.warning(
                    "command_rejected",
                    command=type(command).__name__,
                    **e.to_log_dict(),
                )
                failures.append((command, e))
                continue
            events.extend(produced)
        return state, events, failures

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _add_expense(self, state: LedgerState, cmd: AddExpense):
        if state.get_expense(cmd.expense.id) is not None:
            raise ReconciliationError(f"Expense {cmd.expense.id} already exists")
        new_state = state.model_copy(update={"expenses": state.expenses + (cmd.expense,)})
        return new_state, [LedgerEvent(
            kind=EventKind.EXPENSE_ADDED,
            expense_ids=[cmd.expense.id],
            amount=cmd.expense.amount,
        )]

    def _update_expense(self, state: LedgerState, cmd: UpdateExpense):
        current = self._require_expense(state, cmd.expense.id)
        new_state = _replace_expenses(state, {cmd.expense.id: cmd.expense})
        self._ensure_covered(
            new_state,
            current.linked_bank_txn_ids + cmd.expense.linked_bank_txn_ids,
            f"Updating expense {current.id}",
        )
        return new_state, [LedgerEvent(
            kind=EventKind.EXPENSE_UPDATED,
            expense_ids=[cmd.expense.id],
            amount=cmd.expense.amount,
        )]

    def _delete_expense(self, state: LedgerState, cmd: DeleteExpense):
        current = self._require_expense(state, cmd.expense_id)
        remaining = self.detector.delete(state.expenses, cmd.expense_id)
        new_state = state.model_copy(update={"expenses": tuple(remaining)})
        self._ensure_covered(
            new_state, current.linked_bank_txn_ids, f"Deleting expense {current.id}"
        )
        return new_state, [LedgerEvent(
            kind=EventKind.EXPENSE_DELETED,
            expense_ids=[cmd.expense_id],
        )]

    def _link_existing(self, state: LedgerState, cmd: LinkExisting):
        txn = self._require_transaction(state, cmd.transaction_id)
        expense = self._require_expense(state, cmd.expense_id)
        if expense.is_bank_transaction:
            raise ReconciliationError(
                f"Expense {expense.id} is already reconciled to a bank transaction",
                transaction_id=txn.id,
            )
        if not within_tolerance(txn.amount, expense.amount, self.config.amount_tolerance):
            difference = txn.amount - expense.amount
            raise ImbalanceError(
                f"Expense {expense.id} ({expense.amount}) does not cover "
                f"transaction {txn.id} ({txn.amount})",
                transaction_id=txn.id,
                remainder=difference,
                transaction_amount=txn.amount,
                allocated=expense.amount,
            )

        updated_expense, linked = self.matcher.link_existing(txn, expense)
        new_state = _replace_transaction(
            _replace_expenses(state, {expense.id: updated_expense}), linked
        )
        return new_state, [LedgerEvent(
            kind=EventKind.TRANSACTION_LINKED,
            transaction_id=txn.id,
            expense_ids=[expense.id],
            amount=txn.amount,
        )]

    def _quick_create(self, state: LedgerState, cmd: QuickCreate):
        txn = self._require_transaction(state, cmd.transaction_id)
        expense, linked = self.matcher.quick_create(
            txn, cmd.category, cmd.sub_category, cmd.vehicle_id
        )
        new_state = _replace_transaction(
            state.model_copy(update={"expenses": state.expenses + (expense,)}), linked
        )
        return new_state, [
            LedgerEvent(
                kind=EventKind.EXPENSE_ADDED,
                transaction_id=txn.id,
                expense_ids=[expense.id],
                amount=expense.amount,
            ),
            LedgerEvent(
                kind=EventKind.TRANSACTION_LINKED,
                transaction_id=txn.id,
                expense_ids=[expense.id],
                amount=txn.amount,
            ),
        ]

    def _exclude(self, state: LedgerState, cmd: ExcludeTransaction):
        txn = self._require_transaction(state, cmd.transaction_id)
        excluded = self.matcher.exclude(txn)
        return _replace_transaction(state, excluded), [LedgerEvent(
            kind=EventKind.TRANSACTION_EXCLUDED,
            transaction_id=txn.id,
            amount=txn.amount,
        )]

    def _commit_split(self, state: LedgerState, cmd: CommitSplit):
        txn = self._require_transaction(state, cmd.transaction_id)
        session = SplitSession.from_lines(
            txn, cmd.lines, config=self.config, id_factory=self._new_id
        )
        expenses, linked = session.commit()
        new_state = _replace_transaction(
            state.model_copy(update={"expenses": state.expenses + tuple(expenses)}), linked
        )
        return new_state, [LedgerEvent(
            kind=EventKind.SPLIT_COMMITTED,
            transaction_id=txn.id,
            expense_ids=[e.id for e in expenses],
            amount=txn.amount,
            notes=f"{len(expenses)} lines",
        )]

    def _merge(self, state: LedgerState, cmd: MergeExpenses):
        keep = self._require_expense(state, cmd.keep_id)
        drop = self._require_expense(state, cmd.drop_id)
        if keep.linked_bank_txn_ids and drop.linked_bank_txn_ids:
            # two reconciled debits are two real payments, not a double entry
            raise ReconciliationError(
                f"Expenses {keep.id} and {drop.id} are both reconciled to bank "
                f"transactions; dismiss the group instead of merging",
                details={"keep_id": keep.id, "drop_id": drop.id},
            )

        merged = self.detector.merge(state.expenses, cmd.keep_id, cmd.drop_id)
        new_state = state.model_copy(update={"expenses": tuple(merged)})
        self._ensure_covered(
            new_state,
            keep.linked_bank_txn_ids + drop.linked_bank_txn_ids,
            f"Merging {drop.id} into {keep.id}",
        )
        return new_state, [LedgerEvent(
            kind=EventKind.EXPENSES_MERGED,
            expense_ids=[cmd.keep_id, cmd.drop_id],
            notes=f"kept {cmd.keep_id}",
        )]

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _ensure_covered(self, state: LedgerState, txn_ids: list[str], action: str) -> None:
        """Reject a result that leaves a Linked transaction not exactly covered.

        Only the given transactions, and the expenses referencing them, are
        checked.
        """
        tolerance = self.config.amount_tolerance
        txns = {t.id: t for t in state.bank_transactions}
        for txn_id in dict.fromkeys(txn_ids):
            txn = txns.get(txn_id)
            if txn is None or txn.status != BankTransactionStatus.LINKED:
                continue
            problem = _coverage_problem(state, txn, tolerance)
            if problem is None:
                for expense in state.expenses_for(txn_id):
                    problem = _shared_expense_problem(expense, txns, tolerance)
                    if problem:
                        break
            if problem:
                logger.warning("coverage_rejected", transaction_id=txn_id, problem=problem)
                raise ReconciliationError(
                    f"{action} rejected: {problem}",
                    transaction_id=txn_id,
                )

    def _require_expense(self, state: LedgerState, expense_id: str) -> Expense:
        expense = state.get_expense(expense_id)
        if expense is None:
            raise ReconciliationError(f"Expense {expense_id} not found")
        return expense

    def _require_transaction(self, state: LedgerState, transaction_id: str) -> BankTransaction:
        txn = state.get_transaction(transaction_id)
        if txn is None:
            raise ReconciliationError(
                f"Bank transaction {transaction_id} not found",
                transaction_id=transaction_id,
            )
        return txn


def _replace_expenses(state: LedgerState, replacements: dict[str, Expense]) -> LedgerState:
    expenses = tuple(replacements.get(e.id, e) for e in state.expenses)
    return state.model_copy(update={"expenses": expenses})


def _replace_transaction(state: LedgerState, txn: BankTransaction) -> LedgerState:
    transactions = tuple(txn if t.id == txn.id else t for t in state.bank_transactions)
    return state.model_copy(update={"bank_transactions": transactions})


# =============================================================================
# CONSISTENCY
# =============================================================================


def check_consistency(
    state: LedgerState,
    tolerance: Optional[Decimal] = None,
) -> list[str]:
    """Audit a snapshot against the ledger invariants.

    Checks that expense and transaction ids are unique, that every linked
    bank id on an expense exists, and that every Linked transaction is
    covered exactly (within tolerance) by the expenses referencing it.
    An expense linked to several transactions must instead equal their
    combined amount.

    Returns:
        Human-readable problems; empty when the snapshot is consistent
    """
    tolerance = tolerance if tolerance is not None else get_config().amount_tolerance
    problems: list[str] = []

    seen: set[str] = set()
    for expense in state.expenses:
        if expense.id in seen:
            problems.append(f"Duplicate expense id {expense.id}")
        seen.add(expense.id)

    txns: dict[str, BankTransaction] = {}
    for txn in state.bank_transactions:
        if txn.id in txns:
            problems.append(f"Duplicate bank transaction id {txn.id}")
        txns[txn.id] = txn

    for expense in state.expenses:
        for txn_id in expense.linked_bank_txn_ids:
            if txn_id not in txns:
                problems.append(f"Expense {expense.id} links unknown transaction {txn_id}")

    for txn in txns.values():
        if txn.status != BankTransactionStatus.LINKED:
            continue
        problem = _coverage_problem(state, txn, tolerance)
        if problem:
            problems.append(problem)

    for expense in state.expenses:
        problem = _shared_expense_problem(expense, txns, tolerance)
        if problem:
            problems.append(problem)

    if problems:
        logger.warning("ledger_inconsistent", problems=len(problems))
    return problems


def _coverage_problem(
    state: LedgerState,
    txn: BankTransaction,
    tolerance: Decimal,
) -> Optional[str]:
    """Describe how a Linked transaction fails to be covered, or None."""
    covering = [e for e in state.expenses if e.linked_bank_txn_ids == [txn.id]]
    shared = [
        e for e in state.expenses
        if txn.id in e.linked_bank_txn_ids and len(e.linked_bank_txn_ids) > 1
    ]
    if not covering and not shared:
        return f"Linked transaction {txn.id} has no expenses"
    if covering:
        covered = sum((e.amount for e in covering), ZERO)
        if not within_tolerance(covered, txn.amount, tolerance):
            return f"Linked transaction {txn.id} amount {txn.amount} covered by {covered}"
    return None


def _shared_expense_problem(
    expense: Expense,
    txns: dict[str, BankTransaction],
    tolerance: Decimal,
) -> Optional[str]:
    """An expense linked to several transactions must equal their sum."""
    if len(expense.linked_bank_txn_ids) < 2:
        return None
    linked_total = sum(
        (txns[t].amount for t in expense.linked_bank_txn_ids if t in txns), ZERO
    )
    if within_tolerance(linked_total, expense.amount, tolerance):
        return None
    return (
        f"Expense {expense.id} amount {expense.amount} does not equal "
        f"its linked transactions {linked_total}"
    )
