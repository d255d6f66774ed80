"""Data models for fleetledger-core.

This package provides the records the reconciliation engine works on:
- Expenses, bank transactions and split lines (ledger.py)
- Ledger events returned by state changes (events.py)
"""

from fleetledger_core.taxonomy import ExpenseCategory
from fleetledger_core.models.ledger import (
    SPLIT_ENTRY_TAG,
    BankTransaction,
    BankTransactionStatus,
    DuplicateGroup,
    DuplicateSignature,
    Expense,
    PaymentMethod,
    SplitLine,
)
from fleetledger_core.models.events import (
    EventKind,
    LedgerEvent,
)

__all__ = [
    # Enumerations
    "ExpenseCategory",
    "PaymentMethod",
    "BankTransactionStatus",
    "EventKind",
    # Records
    "Expense",
    "BankTransaction",
    "SplitLine",
    "DuplicateSignature",
    "DuplicateGroup",
    "LedgerEvent",
    # Constants
    "SPLIT_ENTRY_TAG",
]
