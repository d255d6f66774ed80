"""FleetLedger Core - Bank reconciliation and deduplication for fleet expenses."""

__version__ = "0.1.0"

from .duplicates import DuplicateDetector
from .exceptions import (
    EmptySplit,
    FleetLedgerError,
    ImbalanceError,
    InvalidStateTransition,
    ReconciliationError,
)
from .ledger import Ledger, LedgerState, check_consistency
from .matcher import BankTransactionMatcher, BulkResult
from .models import BankTransaction, BankTransactionStatus, Expense, ExpenseCategory
from .splitter import SplitSession, SplitState

__all__ = [
    "BankTransaction",
    "BankTransactionMatcher",
    "BankTransactionStatus",
    "BulkResult",
    "DuplicateDetector",
    "EmptySplit",
    "Expense",
    "ExpenseCategory",
    "FleetLedgerError",
    "ImbalanceError",
    "InvalidStateTransition",
    "Ledger",
    "LedgerState",
    "ReconciliationError",
    "SplitSession",
    "SplitState",
    "check_consistency",
]
