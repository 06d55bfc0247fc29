"""Models module - SQLModel database entities."""

from src.models.connection_request import ConnectionRequest, ConnectionRequestStatus
from src.models.session import (
    TERMINAL_SESSION_STATUSES,
    CounselingSession,
    PaymentProvider,
    SessionStatus,
)
from src.models.transaction import (
    Transaction,
    TransactionStatus,
    TransactionType,
    session_credit_reference,
    withdrawal_reference,
)
from src.models.user import User, UserRole
from src.models.wallet import Currency, Wallet
from src.models.webhook import ProcessedEvent
from src.models.withdrawal import (
    DEFAULT_REVERSAL_REASON,
    OPEN_WITHDRAWAL_STATUSES,
    BankAccount,
    BankAccountType,
    Withdrawal,
    WithdrawalStatus,
)

__all__ = [
    # User
    "User",
    "UserRole",
    # Session
    "CounselingSession",
    "SessionStatus",
    "PaymentProvider",
    "TERMINAL_SESSION_STATUSES",
    # Wallet & ledger
    "Wallet",
    "Currency",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "session_credit_reference",
    "withdrawal_reference",
    # Payouts
    "Withdrawal",
    "WithdrawalStatus",
    "OPEN_WITHDRAWAL_STATUSES",
    "DEFAULT_REVERSAL_REASON",
    "BankAccount",
    "BankAccountType",
    # Webhooks
    "ProcessedEvent",
    # Chat eligibility
    "ConnectionRequest",
    "ConnectionRequestStatus",
]
