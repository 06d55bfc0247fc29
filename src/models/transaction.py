"""Quluub Payments - Wallet transaction ledger."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlmodel import Field, Relationship, SQLModel

from src.utils.helpers import utc_now

if TYPE_CHECKING:
    from src.models.wallet import Wallet


class TransactionType(str, Enum):
    """Direction of a balance change."""

    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, Enum):
    """Transaction status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def session_credit_reference(session_id: int) -> str:
    return f"session:{session_id}"


def withdrawal_reference(withdrawal_id: int, suffix: str | None = None) -> str:
    """Ledger reference for a withdrawal debit, or its refund/compensation credit."""
    base = f"withdrawal:{withdrawal_id}"
    return f"{base}:{suffix}" if suffix else base


class Transaction(SQLModel, table=True):
    """Immutable ledger entry for a single wallet balance change.

    For each wallet, completed credits minus completed debits equals the
    stored balance. The unique reference prevents recording the same cause
    twice.

    Attributes:
        id: Auto-increment primary key
        wallet_id: Wallet whose balance changed
        type: credit or debit
        amount: Positive amount in major units
        description: Human-readable description
        status: pending / completed / failed
        reference: Optional unique external reference
    """

    __tablename__ = "transactions"

    id: int | None = Field(default=None, primary_key=True)
    wallet_id: int = Field(foreign_key="wallets.id", index=True)
    type: TransactionType = Field(index=True)
    amount: Decimal = Field(
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=False),
        description="Positive amount in major units",
    )
    description: str = Field(default="", max_length=500)
    status: TransactionStatus = Field(default=TransactionStatus.COMPLETED, index=True)
    reference: str | None = Field(
        default=None, max_length=128, unique=True, index=True, description="Unique reference"
    )

    created_at: datetime = Field(default_factory=utc_now, index=True)

    wallet: Optional["Wallet"] = Relationship(back_populates="transactions")
