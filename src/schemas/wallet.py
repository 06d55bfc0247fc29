"""Wallet and ledger schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, PlainSerializer

from src.models.transaction import TransactionStatus, TransactionType
from src.models.wallet import Currency

# Two-decimal string, avoids float rounding and scientific notation
MoneyStr = Annotated[
    Decimal,
    PlainSerializer(lambda x: f"{x:.2f}", return_type=str),
]


class WalletResponse(BaseModel):
    """Wallet balance."""

    id: int | None = None
    user_id: int
    balance: MoneyStr
    currency: Currency

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    """Ledger entry."""

    id: int
    type: TransactionType
    amount: MoneyStr
    description: str
    status: TransactionStatus
    reference: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class EarningsSummary(BaseModel):
    """Counselor session earnings (net of platform fee) by period."""

    currency: Currency
    today: MoneyStr
    week: MoneyStr
    month: MoneyStr
    year: MoneyStr
    total: MoneyStr
