"""Split one bank transaction into several categorized expenses.

A single bank debit often pays for more than one cost category (a UPI
payment at a fuel station covering diesel and AdBlue, say). A SplitSession
holds the proposed lines for one transaction while the user edits them and
materializes them as Expense records on commit.

Session states:
    Editing   -> lines are being edited and do not sum to the transaction
    Balanced  -> lines sum to the transaction amount within tolerance
    Committed -> lines became expenses, transaction is Linked
    Aborted   -> session discarded, nothing changed

Commit is all-or-nothing: either every line becomes an expense and the
transaction is linked, or an error is raised and nothing is produced.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from .config import FleetLedgerConfig, get_config
from .exceptions import EmptySplit, ImbalanceError, ReconciliationError
from .models import (
    BankTransaction,
    BankTransactionStatus,
    Expense,
    ExpenseCategory,
    PaymentMethod,
    SplitLine,
)
from .models.ledger import new_expense_id, new_line_id
from .money import ZERO, quantize, to_decimal, within_tolerance
from .tax import suggest_rate, tax_from_gross
from .taxonomy import default_sub_category, is_allowed_sub_category, is_tax_slab
from .transitions import ensure_transition, transition

logger = structlog.get_logger()

# Edits to these fields trigger a tax recomputation on non-overridden lines
_TAX_DRIVERS = frozenset({"amount", "category", "sub_category"})
_EDITABLE = frozenset({
    "amount",
    "category",
    "sub_category",
    "description",
    "vehicle_id",
    "tax_amount",
    "tax_rate",
    "tax_overridden",
})


class SplitState(str, Enum):
    """Lifecycle state of a split session."""

    EDITING = "Editing"
    BALANCED = "Balanced"
    COMMITTED = "Committed"
    ABORTED = "Aborted"


class SplitSession:
    """Editable decomposition of one bank transaction.

    The session starts with a single line carrying the full transaction
    amount under the configured default category (Fuel/Diesel) with GST
    suggested for it.

    Args:
        transaction: The bank transaction being split
        vehicle_id: Vehicle assigned to new lines
        config: Engine configuration (default: process-wide config)
        id_factory: Callable producing identifiers for committed expenses
    """

    def __init__(
        self,
        transaction: BankTransaction,
        vehicle_id: str = "",
        config: Optional[FleetLedgerConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.transaction = transaction
        self.vehicle_id = vehicle_id
        self.config = config or get_config()
        self._new_id = id_factory or new_expense_id
        self._closed: Optional[SplitState] = None
        self._lines: list[SplitLine] = [
            self._suggested_line(
                amount=transaction.amount,
                category=self.config.split_default_category,
                sub_category=self.config.split_default_sub_category,
                description=transaction.description,
            )
        ]

    @classmethod
    def from_lines(
        cls,
        transaction: BankTransaction,
        lines: list[SplitLine],
        config: Optional[FleetLedgerConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> "SplitSession":
        """Rebuild a session from lines edited elsewhere.

        Raises:
            EmptySplit: If lines is empty
            ReconciliationError: If a line has a sub-category its category
                does not allow, tax above its amount, or a non-slab rate
        """
        if not lines:
            raise EmptySplit(
                "A split must keep at least one line",
                transaction_id=transaction.id,
            )
        for line in lines:
            if not is_allowed_sub_category(line.category, line.sub_category):
                raise ReconciliationError(
                    f"Sub-category {line.sub_category!r} is not allowed for {line.category.value}",
                    transaction_id=transaction.id,
                )
            if line.tax_amount > line.amount:
                raise ReconciliationError(
                    f"Tax {line.tax_amount} exceeds line amount {line.amount}",
                    transaction_id=transaction.id,
                )
            # lines built with model_copy skip field validation
            if not is_tax_slab(line.tax_rate):
                raise ReconciliationError(
                    f"Tax rate {line.tax_rate} on line {line.id} is not a GST slab",
                    transaction_id=transaction.id,
                )
        session = cls(transaction, config=config, id_factory=id_factory)
        session._lines = list(lines)
        return session

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def lines(self) -> list[SplitLine]:
        """Current lines (copies; edit through update_line)."""
        return list(self._lines)

    @property
    def allocated(self) -> Decimal:
        """Sum of all line amounts."""
        return sum((line.amount for line in self._lines), ZERO)

    @property
    def remainder(self) -> Decimal:
        """Unallocated amount; negative when lines over-allocate."""
        return self.transaction.amount - self.allocated

    @property
    def is_balanced(self) -> bool:
        return within_tolerance(
            self.transaction.amount, self.allocated, self.config.amount_tolerance
        )

    @property
    def state(self) -> SplitState:
        if self._closed is not None:
            return self._closed
        return SplitState.BALANCED if self.is_balanced else SplitState.EDITING

    def get_line(self, line_id: str) -> SplitLine:
        for line in self._lines:
            if line.id == line_id:
                return line
        raise ReconciliationError(
            f"No split line {line_id}",
            transaction_id=self.transaction.id,
        )

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def add_line(self) -> Optional[SplitLine]:
        """Append a line for the unallocated remainder.

        Returns:
            The new line, or None when nothing is left to allocate
        """
        self._ensure_open()
        remainder = self.remainder
        if remainder <= 0:
            return None

        line = self._suggested_line(
            amount=remainder,
            category=self.config.split_extra_category,
            sub_category=self.config.split_extra_sub_category,
        )
        self._lines.append(line)
        logger.debug(
            "split_line_added",
            transaction_id=self.transaction.id,
            line_id=line.id,
            amount=str(line.amount),
        )
        return line

    def remove_line(self, line_id: str) -> None:
        """Delete a line.

        Raises:
            EmptySplit: If it is the only line left
        """
        self._ensure_open()
        line = self.get_line(line_id)
        if len(self._lines) == 1:
            raise EmptySplit(
                "A split must keep at least one line",
                transaction_id=self.transaction.id,
            )
        self._lines = [ln for ln in self._lines if ln.id != line.id]

    def update_line(self, line_id: str, **fields: Any) -> SplitLine:
        """Apply edits to a line.

        When the line's tax is not overridden and the edit touches amount,
        category or sub-category, the rate is re-suggested and the tax
        recomputed from the new gross amount. Setting tax_amount directly
        overrides the tax (rate becomes 0) and it is never recomputed again
        until tax_rate is set or tax_overridden is cleared.

        Changing the category without giving a sub-category moves the line
        to the new category's first sub-category.

        Returns:
            The updated line

        Raises:
            ReconciliationError: Unknown line, unknown field or invalid
                sub-category
        """
        self._ensure_open()
        line = self.get_line(line_id)

        unknown = set(fields) - _EDITABLE
        if unknown:
            raise ReconciliationError(
                f"Cannot edit split line fields: {sorted(unknown)}",
                transaction_id=self.transaction.id,
            )

        updates = dict(fields)
        if "amount" in updates:
            updates["amount"] = self._convert("amount", quantize, updates["amount"])
            if updates["amount"] < 0:
                raise ReconciliationError(
                    "Split line amount cannot be negative",
                    transaction_id=self.transaction.id,
                )
        if "category" in updates:
            updates["category"] = self._convert("category", ExpenseCategory, updates["category"])
            if "sub_category" not in updates and updates["category"] != line.category:
                updates["sub_category"] = default_sub_category(updates["category"])

        category = updates.get("category", line.category)
        sub_category = updates.get("sub_category", line.sub_category)
        if not is_allowed_sub_category(category, sub_category):
            raise ReconciliationError(
                f"Sub-category {sub_category!r} is not allowed for {category.value}",
                transaction_id=self.transaction.id,
            )

        if "tax_amount" in updates:
            updates["tax_amount"] = self._convert("tax_amount", quantize, updates["tax_amount"])
            updates.setdefault("tax_overridden", True)
            if updates["tax_overridden"]:
                updates["tax_rate"] = Decimal("0")

        new_line = line.model_copy(update=updates)

        if "tax_rate" in fields and "tax_amount" not in fields:
            rate = self._convert("tax_rate", to_decimal, fields["tax_rate"])
            if not is_tax_slab(rate):
                raise ReconciliationError(
                    f"Tax rate {rate} is not a GST slab",
                    transaction_id=self.transaction.id,
                )
            new_line = new_line.model_copy(update={
                "tax_rate": rate,
                "tax_amount": tax_from_gross(new_line.amount, rate),
                "tax_overridden": False,
            })
        elif not new_line.tax_overridden and (
            _TAX_DRIVERS & set(fields) or ("tax_overridden" in fields and line.tax_overridden)
        ):
            rate = suggest_rate(
                new_line.category, new_line.sub_category, self.config.default_tax_rate
            )
            new_line = new_line.model_copy(update={
                "tax_rate": rate,
                "tax_amount": tax_from_gross(new_line.amount, rate),
            })

        if new_line.tax_amount > new_line.amount:
            raise ReconciliationError(
                f"Tax {new_line.tax_amount} exceeds line amount {new_line.amount}",
                transaction_id=self.transaction.id,
            )

        self._lines = [new_line if ln.id == line_id else ln for ln in self._lines]
        return new_line

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def commit(self, expense_date: Optional[date] = None) -> tuple[list[Expense], BankTransaction]:
        """Materialize the lines as expenses and link the transaction.

        Args:
            expense_date: Date for the new expenses (default: transaction date)

        Returns:
            (new expenses in line order, linked transaction)

        Raises:
            ImbalanceError: Lines do not sum to the transaction amount
            InvalidStateTransition: Transaction is no longer Pending
        """
        self._ensure_open()
        txn = self.transaction

        if not self.is_balanced:
            remainder = self.remainder
            logger.warning(
                "split_commit_rejected",
                transaction_id=txn.id,
                remainder=str(remainder),
            )
            raise ImbalanceError(
                f"Split total {self.allocated} does not equal transaction amount "
                f"{txn.amount}; difference {remainder}",
                transaction_id=txn.id,
                remainder=remainder,
                transaction_amount=txn.amount,
                allocated=self.allocated,
            )
        ensure_transition(txn, BankTransactionStatus.LINKED)

        try:
            expenses = [
                Expense(
                    id=self._new_id(),
                    date=expense_date or txn.date,
                    amount=line.amount,
                    category=line.category,
                    sub_category=line.sub_category,
                    vehicle_id=line.vehicle_id,
                    description=line.description or txn.description,
                    vendor=txn.description,
                    tax_amount=line.tax_amount,
                    tax_rate=line.tax_rate,
                    payment_method=PaymentMethod.BANK_TRANSFER,
                    is_bank_transaction=True,
                    linked_bank_txn_ids=[txn.id],
                    tags=[self.config.split_tag],
                )
                for line in self._lines
            ]
        except ValidationError as e:
            raise ReconciliationError(
                f"Split lines do not form valid expenses: {e.errors()[0]['msg']}",
                transaction_id=txn.id,
            ) from e
        linked = transition(txn, BankTransactionStatus.LINKED)

        self._closed = SplitState.COMMITTED
        self.transaction = linked
        logger.info(
            "split_committed",
            transaction_id=txn.id,
            lines=len(expenses),
            amount=str(txn.amount),
        )
        return expenses, linked

    def abort(self) -> None:
        """Discard the session; nothing is produced."""
        self._ensure_open()
        self._closed = SplitState.ABORTED
        logger.debug("split_aborted", transaction_id=self.transaction.id)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed is not None:
            raise ReconciliationError(
                f"Split session for {self.transaction.id} is {self._closed.value}",
                transaction_id=self.transaction.id,
            )

    def _convert(self, field_name: str, convert: Callable[[Any], Any], value: Any) -> Any:
        """Coerce an edited value, reporting bad input as a ReconciliationError."""
        try:
            result = convert(value)
        except (ValueError, TypeError, ArithmeticError) as e:
            raise ReconciliationError(
                f"Invalid {field_name} for split line: {value!r}",
                transaction_id=self.transaction.id,
            ) from e
        if isinstance(result, Decimal) and not result.is_finite():
            raise ReconciliationError(
                f"Invalid {field_name} for split line: {value!r}",
                transaction_id=self.transaction.id,
            )
        return result

    def _suggested_line(
        self,
        amount: Decimal,
        category: ExpenseCategory,
        sub_category: str,
        description: str = "",
    ) -> SplitLine:
        rate = suggest_rate(category, sub_category, self.config.default_tax_rate)
        return SplitLine(
            id=new_line_id(),
            amount=amount,
            category=category,
            sub_category=sub_category,
            description=description,
            vehicle_id=self.vehicle_id,
            tax_amount=tax_from_gross(amount, rate),
            tax_rate=rate,
        )
