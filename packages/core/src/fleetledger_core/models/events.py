"""Ledger events emitted by reconciliation operations.

Every command applied to a LedgerState returns the events it produced
alongside the new state, so the surrounding application can persist the
delta, refresh views, or keep an audit trail of what was reconciled.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    """Return current UTC datetime with timezone info."""
    return datetime.now(timezone.utc)


class EventKind(str, Enum):
    """What a ledger event records."""
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    TRANSACTION_LINKED = "transaction_linked"
    TRANSACTION_EXCLUDED = "transaction_excluded"
    SPLIT_COMMITTED = "split_committed"
    EXPENSES_MERGED = "expenses_merged"


class LedgerEvent(BaseModel):
    """Single event recording one state change.

    Attributes:
        timestamp: When the event was created (UTC)
        kind: Type of change
        transaction_id: Bank transaction involved, if any
        expense_ids: Expenses created, updated or removed
        amount: Amount moved by the change, where meaningful
        notes: Additional context
    """
    timestamp: datetime = Field(default_factory=_utc_now)
    kind: EventKind
    transaction_id: Optional[str] = None
    expense_ids: list[str] = Field(default_factory=list)
    amount: Optional[Decimal] = None
    notes: Optional[str] = None

    def model_post_init(self, __context) -> None:
        """Ensure timestamp is timezone-aware."""
        if self.timestamp.tzinfo is None:
            object.__setattr__(
                self,
                'timestamp',
                self.timestamp.replace(tzinfo=timezone.utc)
            )

    def to_log_dict(self) -> dict:
        """Key/value form for structured logging."""
        data = {"kind": self.kind.value, "expense_ids": self.expense_ids}
        if self.transaction_id:
            data["transaction_id"] = self.transaction_id
        if self.amount is not None:
            data["amount"] = str(self.amount)
        if self.notes:
            data["notes"] = self.notes
        return data
