"""Bank transaction status machine.

All status changes of a BankTransaction go through transition(), which
checks the requested move against a single table. Pending is the only
status with outgoing edges; Linked and Excluded are terminal, so there is
no way back to Pending (undo of a link or exclusion is not supported).
"""

import structlog

from .exceptions import InvalidStateTransition
from .models import BankTransaction, BankTransactionStatus

logger = structlog.get_logger()

TRANSITIONS: dict[BankTransactionStatus, frozenset[BankTransactionStatus]] = {
    BankTransactionStatus.PENDING: frozenset({
        BankTransactionStatus.LINKED,
        BankTransactionStatus.EXCLUDED,
    }),
    BankTransactionStatus.LINKED: frozenset(),
    BankTransactionStatus.EXCLUDED: frozenset(),
}


def can_transition(current: BankTransactionStatus, target: BankTransactionStatus) -> bool:
    """Return True if the table allows current -> target."""
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(txn: BankTransaction, target: BankTransactionStatus) -> None:
    """Raise InvalidStateTransition unless txn may move to target."""
    if not can_transition(txn.status, target):
        logger.warning(
            "transition_rejected",
            transaction_id=txn.id,
            current=txn.status.value,
            target=target.value,
        )
        raise InvalidStateTransition(
            f"Bank transaction {txn.id} is {txn.status.value}; "
            f"cannot mark it {target.value}",
            transaction_id=txn.id,
            current=txn.status.value,
            target=target.value,
        )


def transition(txn: BankTransaction, target: BankTransactionStatus) -> BankTransaction:
    """Move a transaction to a new status.

    Args:
        txn: Transaction to move (not modified)
        target: Requested status

    Returns:
        A copy of txn with the new status

    Raises:
        InvalidStateTransition: If the table does not allow the move
    """
    ensure_transition(txn, target)
    return txn.model_copy(update={"status": target})
