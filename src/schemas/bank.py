"""Bank account and withdrawal schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from src.models.wallet import Currency
from src.models.withdrawal import BankAccountType, WithdrawalStatus
from src.schemas.wallet import MoneyStr


class BankAccountCreate(BaseModel):
    """Add or replace the payout account.

    Local accounts need bank_code and account_number; international
    accounts need iban and swift_bic.
    """

    account_type: BankAccountType = BankAccountType.LOCAL
    bank_name: str = Field(..., min_length=1, max_length=255)
    account_name: str = Field(..., min_length=1, max_length=255)
    bank_code: str | None = Field(default=None, max_length=32)
    account_number: str | None = Field(default=None, min_length=10, max_length=10)
    iban: str | None = Field(default=None, max_length=34)
    swift_bic: str | None = Field(default=None, max_length=16)
    country: str = Field(default="NG", min_length=2, max_length=2)

    @model_validator(mode="after")
    def check_account_fields(self) -> "BankAccountCreate":
        if self.account_type == BankAccountType.LOCAL:
            if not self.bank_code or not self.account_number:
                raise ValueError("bank_code and account_number are required for local accounts")
        elif not self.iban or not self.swift_bic:
            raise ValueError("iban and swift_bic are required for international accounts")
        return self


class BankAccountResponse(BaseModel):
    """Payout account (account number masked)."""

    id: int
    account_type: BankAccountType
    bank_name: str
    bank_code: str | None = None
    account_number_last4: str
    account_name: str
    swift_bic: str | None = None
    country: str
    is_verified: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class WithdrawRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount in major units")
    currency: Currency = Field(default=Currency.NGN)


class WithdrawalResponse(BaseModel):
    """Withdrawal status."""

    id: int
    amount: MoneyStr
    currency: Currency
    status: WithdrawalStatus
    transfer_code: str | None = None
    failure_reason: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    class Config:
        from_attributes = True
