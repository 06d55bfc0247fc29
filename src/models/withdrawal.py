"""Quluub Payments - Withdrawal and bank account models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from src.models.wallet import Currency
from src.utils.helpers import utc_now


class WithdrawalStatus(str, Enum):
    """Withdrawal status.

    State transitions: pending -> processing -> completed / failed
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


OPEN_WITHDRAWAL_STATUSES = (WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING)

DEFAULT_REVERSAL_REASON = "Transfer was reversed by Paystack."


class BankAccountType(str, Enum):
    LOCAL = "local"
    INTERNATIONAL = "international"


class BankAccount(SQLModel, table=True):
    """Counselor payout destination, one per user.

    Local accounts (bank code + account number) are verified by name-matching
    the Paystack resolution result. International accounts (IBAN/SWIFT) are
    stored for manual payouts and never verified.

    Attributes:
        encrypted_account_number: AES-GCM ciphertext of the account number or IBAN
        account_number_last4: Display hint
        recipient_code: Paystack transfer recipient, created on verification
        is_verified: Set only after a successful name match
    """

    __tablename__ = "bank_accounts"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    account_type: BankAccountType = Field(default=BankAccountType.LOCAL)
    bank_name: str = Field(max_length=255)
    bank_code: str | None = Field(default=None, max_length=32)
    encrypted_account_number: str = Field(max_length=512)
    account_number_last4: str = Field(max_length=4)
    account_name: str = Field(max_length=255)
    swift_bic: str | None = Field(default=None, max_length=16)
    country: str = Field(default="NG", max_length=2)
    recipient_code: str | None = Field(default=None, max_length=64)
    is_verified: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Withdrawal(SQLModel, table=True):
    """A counselor's payout request.

    Attributes:
        id: Auto-increment primary key
        user_id: Requesting counselor
        bank_account_id: Destination account
        amount: Amount in major units
        currency: Wallet currency
        status: See WithdrawalStatus
        transfer_code: Paystack transfer code (webhook lookup key)
        transfer_reference: Reference we sent with the transfer
        failure_reason: Set when status is failed
    """

    __tablename__ = "withdrawals"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    bank_account_id: int = Field(foreign_key="bank_accounts.id")
    amount: Decimal = Field(
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=False),
        description="Amount in major units",
    )
    currency: Currency = Field(default=Currency.NGN)
    status: WithdrawalStatus = Field(default=WithdrawalStatus.PENDING, index=True)
    transfer_code: str | None = Field(default=None, max_length=64, unique=True, index=True)
    transfer_reference: str | None = Field(default=None, max_length=64, index=True)
    failure_reason: str | None = Field(default=None, max_length=500)

    completed_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
