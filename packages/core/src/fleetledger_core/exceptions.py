"""Custom exceptions for the FleetLedger reconciliation engine.

This module provides a hierarchy of exception classes for consistent error
handling across matching, splitting and duplicate resolution. All exceptions
inherit from FleetLedgerError, making it easy to catch all package errors.

Example:
    try:
        expenses, txn = session.commit()
    except ImbalanceError as e:
        # Show the exact remainder and let the user adjust the lines
        print(f"Unallocated: {e.remainder}")
    except ReconciliationError as e:
        logger.warning("reconciliation_rejected", error=str(e))
"""

from decimal import Decimal
from typing import Any, Optional


class FleetLedgerError(Exception):
    """Root of the ledger engine's errors.

    The message is meant for the person reconciling the ledger; details
    carries the ids and amounts involved so the error can be logged as
    structured context.

    Attributes:
        message: Text shown to the user.
        details: Ids, amounts and statuses related to the failure.
        recoverable: True when correcting the input and retrying can succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, "
            f"details={self.details!r}, recoverable={self.recoverable!r})"
        )

    def to_log_dict(self) -> dict[str, Any]:
        """Key/value form for structured logging."""
        return {
            "error": type(self).__name__,
            "reason": self.message,
            "recoverable": self.recoverable,
            **self.details,
        }


class ReconciliationError(FleetLedgerError):
    """Error raised when a reconciliation operation is rejected.

    Every reconciliation error leaves the ledger untouched; the caller
    surfaces the message, corrects input and re-invokes the operation.

    Attributes:
        transaction_id: The bank transaction involved (if any).
        imbalance: The numeric imbalance, where applicable.

    Example:
        >>> raise ReconciliationError(
        ...     "Expense E9 not found",
        ...     transaction_id="BT1",
        ... )
        ReconciliationError: Expense E9 not found
    """

    def __init__(
        self,
        message: str,
        *,
        transaction_id: Optional[str] = None,
        imbalance: Optional[Decimal] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize ReconciliationError.

        Args:
            message: Human-readable error description.
            transaction_id: Identifier of the bank transaction involved.
            imbalance: Numeric imbalance reported to the caller.
            details: Optional dictionary with additional context.
            recoverable: Defaults to True; none of these errors are fatal.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.transaction_id = transaction_id
        self.imbalance = imbalance

        if transaction_id:
            self.details["transaction_id"] = transaction_id
        if imbalance is not None:
            self.details["imbalance"] = str(imbalance)


class ImbalanceError(ReconciliationError):
    """Split commit attempted while the lines do not sum to the transaction.

    Attributes:
        remainder: Unallocated amount (transaction amount minus line total).
            Negative when the lines over-allocate.
        transaction_amount: Amount of the bank transaction being split.
        allocated: Sum of the split line amounts.

    Example:
        >>> raise ImbalanceError(
        ...     "Split lines do not balance",
        ...     transaction_id="BT1",
        ...     remainder=Decimal("1.00"),
        ...     transaction_amount=Decimal("5000.00"),
        ...     allocated=Decimal("4999.00"),
        ... )
        ImbalanceError: Split lines do not balance
    """

    def __init__(
        self,
        message: str,
        *,
        remainder: Decimal,
        transaction_amount: Decimal,
        allocated: Decimal,
        transaction_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            transaction_id=transaction_id,
            imbalance=remainder,
            details=details,
        )
        self.remainder = remainder
        self.transaction_amount = transaction_amount
        self.allocated = allocated

        self.details["remainder"] = str(remainder)
        self.details["transaction_amount"] = str(transaction_amount)
        self.details["allocated"] = str(allocated)


class InvalidStateTransition(ReconciliationError):
    """A bank transaction was asked to move to a status it cannot reach.

    Attributes:
        current: Status the transaction is in.
        target: Status that was requested.
    """

    def __init__(
        self,
        message: str,
        *,
        current: str,
        target: str,
        transaction_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, transaction_id=transaction_id, details=details)
        self.current = current
        self.target = target

        self.details["current"] = current
        self.details["target"] = target


class EmptySplit(ReconciliationError):
    """Attempt to remove the last remaining split line."""


class ConfigurationError(FleetLedgerError):
    """Error raised when configuration or reference data is invalid.

    Raised at import time when the category taxonomy is incomplete, and by
    configuration validation. Configuration errors are not recoverable.

    Attributes:
        config_key: The configuration key or table entry that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).

    Example:
        >>> raise ConfigurationError(
        ...     "Category has no sub-categories",
        ...     config_key="Permit",
        ...     expected="At least one sub-category",
        ... )
        ConfigurationError: Category has no sub-categories
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "FleetLedgerError",
    "ReconciliationError",
    "ImbalanceError",
    "InvalidStateTransition",
    "EmptySplit",
    "ConfigurationError",
]
