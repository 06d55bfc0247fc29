"""Schemas module - Pydantic DTOs for request/response."""

from src.schemas.bank import (
    BankAccountCreate,
    BankAccountResponse,
    WithdrawalResponse,
    WithdrawRequest,
)
from src.schemas.pagination import CustomPage
from src.schemas.session import (
    CheckoutRequest,
    CheckoutResponse,
    RescheduleRequest,
    SessionResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from src.schemas.wallet import (
    EarningsSummary,
    MoneyStr,
    TransactionResponse,
    WalletResponse,
)

__all__: list[str] = [
    "CustomPage",
    "MoneyStr",
    # Wallet
    "WalletResponse",
    "TransactionResponse",
    "EarningsSummary",
    # Sessions
    "CheckoutRequest",
    "CheckoutResponse",
    "RescheduleRequest",
    "SessionResponse",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
    # Bank
    "BankAccountCreate",
    "BankAccountResponse",
    "WithdrawRequest",
    "WithdrawalResponse",
]
