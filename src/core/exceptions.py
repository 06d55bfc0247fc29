"""Quluub Payments - Custom exceptions."""

from decimal import Decimal
from typing import Any


class AppError(Exception):
    """Base exception for all payment service errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(AppError):
    """Authentication failed."""

    pass


class AuthorizationError(AppError):
    """User lacks permission for this action."""

    pass


class ValidationError(AppError):
    """Input validation failed."""

    pass


class UnsupportedCurrencyError(ValidationError):
    """Currency is not one of the supported checkout currencies."""

    def __init__(self, currency: str) -> None:
        super().__init__(f"Unsupported currency: {currency}", {"currency": currency})


class NotFoundError(AppError):
    """Requested record does not exist."""

    pass


class SessionNotFoundError(NotFoundError):
    """No session matches a provider reference."""

    pass


class WithdrawalNotFoundError(NotFoundError):
    """No withdrawal matches a transfer code."""

    pass


class InvalidStateError(AppError):
    """Requested transition is not allowed from the current status."""

    def __init__(self, entity: str, current: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} {entity} in status '{current}'",
            {"status": current, "action": action},
        )


class InsufficientBalanceError(AppError):
    """Wallet balance does not cover the requested amount."""

    def __init__(
        self,
        required: Decimal | None = None,
        available: Decimal | None = None,
        message: str = "Insufficient funds",
    ) -> None:
        details = {}
        if required is not None:
            details["required"] = str(required)
        if available is not None:
            details["available"] = str(available)
        super().__init__(message, details)


class LedgerCreditError(AppError):
    """A verified payment could not be credited to the counselor wallet."""

    pass


class BankAccountNotVerifiedError(ValidationError):
    """No verified payout account on file."""

    pass


class AccountNameMismatchError(ValidationError):
    """Submitted account name differs from the bank's record."""

    pass


class InvalidSignatureError(AppError):
    """Webhook signature missing or does not match the payload."""

    pass


# ============ Upstream provider errors ============


class GatewayError(AppError):
    """Payment or collaborator provider call failed."""

    pass


class CheckoutCreationFailed(GatewayError):
    """Provider rejected or failed to create a hosted checkout."""

    pass


class AccountResolutionFailed(GatewayError):
    """Bank account lookup failed."""

    pass


class RecipientCreationFailed(GatewayError):
    """Transfer recipient could not be created."""

    pass


class TransferInitiationFailed(GatewayError):
    """Transfer was not accepted by the provider."""

    pass


class PaymentVerificationFailed(GatewayError):
    """Provider lookup of a payment status failed."""

    pass


class VideoRoomError(GatewayError):
    """Video room provisioning failed."""

    pass
