"""Ledger data models: expenses, bank transactions and split lines.

These are the records the reconciliation engine reads and produces:
- Expense: a single ledger entry, manual or originating from the bank feed
- BankTransaction: one debit line from an imported bank statement
- SplitLine: a proposed expense inside an open split session
- DuplicateGroup: expenses sharing a content signature (derived, never stored)

Money fields are Decimal quantized to two places. Records are updated by
copying (model_copy) so that a caller's snapshot is never mutated.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from ..money import quantize
from ..taxonomy import ExpenseCategory, is_allowed_sub_category, is_tax_slab


class PaymentMethod(str, Enum):
    """How an expense was paid."""

    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    FASTAG = "Fastag"
    CREDIT_CARD = "Credit Card"
    UPI = "UPI"


class BankTransactionStatus(str, Enum):
    """Reconciliation status of a bank feed line."""

    PENDING = "Pending"
    LINKED = "Linked"
    EXCLUDED = "Excluded"


SPLIT_ENTRY_TAG = "split-entry"


class Expense(BaseModel):
    """A single fleet expense ledger entry.

    Created by manual entry, by quick-create from a bank transaction, or by
    committing a split session (one Expense per split line).
    """

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "E3",
                    "date": "2024-05-14",
                    "amount": "8000.00",
                    "category": "Maintenance",
                    "sub_category": "Brake Service",
                    "vehicle_id": "T2",
                    "description": "Brake pads",
                    "vendor": "Local Mechanic",
                    "tax_amount": "1220.34",
                    "tax_rate": "18",
                    "payment_method": "Cash",
                }
            ]
        }
    }

    id: str = Field(frozen=True, min_length=1, description="Unique, immutable identifier")
    date: date
    amount: Decimal = Field(ge=0, description="Gross (tax-inclusive) amount")
    category: ExpenseCategory
    sub_category: str
    vehicle_id: str = Field(default="", description="Owning vehicle reference")
    description: str = ""
    vendor: Optional[str] = None
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax_rate: Decimal = Field(
        default=Decimal("0"),
        description="GST slab in percent; 0 when the tax amount was overridden by hand",
    )
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    is_bank_transaction: bool = False
    linked_bank_txn_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    invoice_number: Optional[str] = None
    has_invoice_copy: bool = False
    trip_id: Optional[str] = None
    liters: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("amount", "tax_amount", mode="before")
    @classmethod
    def coerce_money(cls, v):
        """Coerce amounts to Decimal with two places."""
        return quantize(v)

    @field_validator("tax_rate", mode="before")
    @classmethod
    def coerce_rate(cls, v):
        return Decimal(str(v)) if not isinstance(v, Decimal) else v

    @field_validator("tax_rate")
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if not is_tax_slab(v):
            raise ValueError(f"Tax rate {v} is not a GST slab")
        return v

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_invariants(self) -> "Expense":
        if self.tax_amount > self.amount:
            raise ValueError(
                f"Tax amount {self.tax_amount} exceeds gross amount {self.amount}"
            )
        if self.is_bank_transaction and not self.linked_bank_txn_ids:
            raise ValueError("Bank-originated expense must reference at least one bank transaction")
        if not is_allowed_sub_category(self.category, self.sub_category):
            raise ValueError(
                f"Sub-category {self.sub_category!r} is not allowed for {self.category.value}"
            )
        return self

    @computed_field
    @property
    def net_amount(self) -> Decimal:
        """Tax-exclusive base amount."""
        return self.amount - self.tax_amount

    @property
    def is_split_entry(self) -> bool:
        return SPLIT_ENTRY_TAG in self.tags


class BankTransaction(BaseModel):
    """A debit line from an imported bank statement."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "BT3",
                    "date": "2024-05-19",
                    "amount": "8000.00",
                    "description": "NEFT: LOCAL MECH",
                    "status": "Pending",
                    "potential_match_id": "E3",
                }
            ]
        }
    }

    id: str = Field(frozen=True, min_length=1)
    date: date
    amount: Decimal = Field(gt=0, description="Debit amount, always positive")
    description: str = Field(default="", description="Raw bank narration")
    status: BankTransactionStatus = BankTransactionStatus.PENDING
    potential_match_id: Optional[str] = Field(
        default=None,
        description="Expense suspected to correspond to this transaction",
    )

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return quantize(v)

    @property
    def is_pending(self) -> bool:
        return self.status == BankTransactionStatus.PENDING


class SplitLine(BaseModel):
    """One proposed expense inside a split session.

    Ephemeral: lines only exist while a session is open and materialize into
    Expense records when the session commits.
    """

    id: str
    amount: Decimal = Field(ge=0)
    category: ExpenseCategory
    sub_category: str
    description: str = ""
    vehicle_id: str = ""
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax_rate: Decimal = Decimal("0")
    tax_overridden: bool = False

    @field_validator("amount", "tax_amount", mode="before")
    @classmethod
    def coerce_money(cls, v):
        return quantize(v)

    @field_validator("tax_rate")
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if not is_tax_slab(v):
            raise ValueError(f"Tax rate {v} is not a GST slab")
        return v


class DuplicateSignature(NamedTuple):
    """Content key shared by probable double entries."""
    date: date
    amount: Decimal
    vendor: str


class DuplicateGroup(BaseModel):
    """Two or more expenses sharing one signature."""

    signature: DuplicateSignature
    expenses: list[Expense] = Field(min_length=2)

    @property
    def expense_ids(self) -> list[str]:
        return [e.id for e in self.expenses]

    def __len__(self) -> int:
        return len(self.expenses)


def new_expense_id() -> str:
    """Generate an identifier for an expense created by the engine."""
    return f"E-{uuid4().hex[:12]}"


def new_line_id() -> str:
    return uuid4().hex[:9]
