"""Quluub Payments - Wallet model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlmodel import Field, Relationship, SQLModel

from src.utils.helpers import utc_now

if TYPE_CHECKING:
    from src.models.transaction import Transaction


class Currency(str, Enum):
    """Supported settlement currencies."""

    USD = "usd"
    NGN = "ngn"


class Wallet(SQLModel, table=True):
    """Counselor earnings wallet, one per user.

    The balance is never written from a value read in Python; every change
    is a single `balance = balance +/- x` statement issued together with the
    Transaction row that explains it (see LedgerService).

    Attributes:
        id: Auto-increment primary key
        user_id: Owner (unique)
        balance: Current balance in major units
        currency: Fixed at creation
    """

    __tablename__ = "wallets"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    balance: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=False, default=Decimal("0")),
    )
    currency: Currency = Field(default=Currency.USD)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    transactions: list["Transaction"] = Relationship(back_populates="wallet")
