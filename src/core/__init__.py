"""Core module - configuration, security, and exceptions."""

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    AccountNameMismatchError,
    AccountResolutionFailed,
    AppError,
    AuthenticationError,
    AuthorizationError,
    BankAccountNotVerifiedError,
    CheckoutCreationFailed,
    GatewayError,
    InsufficientBalanceError,
    InvalidSignatureError,
    InvalidStateError,
    LedgerCreditError,
    NotFoundError,
    PaymentVerificationFailed,
    RecipientCreationFailed,
    SessionNotFoundError,
    TransferInitiationFailed,
    UnsupportedCurrencyError,
    ValidationError,
    VideoRoomError,
    WithdrawalNotFoundError,
)
from src.core.security import (
    AESCipher,
    decrypt_sensitive_data,
    encrypt_sensitive_data,
    generate_aes_key,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Security
    "AESCipher",
    "encrypt_sensitive_data",
    "decrypt_sensitive_data",
    "generate_aes_key",
    # Exceptions
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "ValidationError",
    "UnsupportedCurrencyError",
    "NotFoundError",
    "SessionNotFoundError",
    "WithdrawalNotFoundError",
    "InvalidStateError",
    "InsufficientBalanceError",
    "LedgerCreditError",
    "BankAccountNotVerifiedError",
    "AccountNameMismatchError",
    "InvalidSignatureError",
    "GatewayError",
    "CheckoutCreationFailed",
    "AccountResolutionFailed",
    "RecipientCreationFailed",
    "TransferInitiationFailed",
    "PaymentVerificationFailed",
    "VideoRoomError",
]
