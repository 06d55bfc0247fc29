"""Payment gateway adapters (Stripe, Paystack)."""

from src.gateways.base import (
    CheckoutResult,
    PaymentEvent,
    PaymentGateway,
    ResolvedAccount,
    TransferEvent,
    TransferResult,
)
from src.gateways.factory import get_payment_gateway, provider_for_currency

__all__ = [
    "PaymentGateway",
    "CheckoutResult",
    "ResolvedAccount",
    "TransferResult",
    "PaymentEvent",
    "TransferEvent",
    "get_payment_gateway",
    "provider_for_currency",
]
