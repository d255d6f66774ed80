"""Shared fixtures for fleetledger-core tests."""

from datetime import date
from itertools import count

import pytest

from fleetledger_core.config import FleetLedgerConfig
from fleetledger_core.models import (
    BankTransaction,
    BankTransactionStatus,
    Expense,
    ExpenseCategory,
    PaymentMethod,
)


@pytest.fixture
def config() -> FleetLedgerConfig:
    """Configuration with defaults only (no .env file)."""
    return FleetLedgerConfig(_env_file=None)


@pytest.fixture
def ids():
    """Deterministic expense identifier factory: E1, E2, ..."""
    counter = count(1)
    return lambda: f"E{next(counter)}"


def make_expense(expense_id: str = "E1", amount="8000", **overrides) -> Expense:
    data = {
        "id": expense_id,
        "date": date(2024, 5, 14),
        "amount": amount,
        "category": ExpenseCategory.MAINTENANCE,
        "sub_category": "Brake Service",
        "vehicle_id": "T2",
        "description": "Brake pads",
        "vendor": "Local Mechanic",
        "payment_method": PaymentMethod.CASH,
    }
    data.update(overrides)
    return Expense(**data)


def make_txn(
    txn_id: str = "BT1",
    amount="8000",
    status: BankTransactionStatus = BankTransactionStatus.PENDING,
    **overrides,
) -> BankTransaction:
    data = {
        "id": txn_id,
        "date": date(2024, 5, 19),
        "amount": amount,
        "description": "NEFT: LOCAL MECH",
        "status": status,
    }
    data.update(overrides)
    return BankTransaction(**data)
