"""Base payment gateway interface.

Defines the abstract interface that Stripe and Paystack implement so the
checkout, reconciliation and withdrawal flows never branch on currency.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from src.core.exceptions import ValidationError
from src.models.session import CounselingSession, PaymentProvider


@dataclass
class CheckoutResult:
    """Hosted checkout created for a session."""

    provider: PaymentProvider
    redirect_url: str
    provider_session_id: str


@dataclass
class ResolvedAccount:
    """Account holder details returned by bank account resolution."""

    account_name: str
    account_number: str


@dataclass
class TransferResult:
    """Transfer accepted by the provider."""

    transfer_code: str
    status: str


@dataclass
class PaymentEvent:
    """A confirmed payment from a webhook or a status lookup, normalized across providers.

    checkout_id is set for Stripe, reference for Paystack. amount_minor is
    exactly as the provider reported it.
    """

    provider: PaymentProvider
    event_key: str
    event_type: str
    checkout_id: str | None = None
    reference: str | None = None
    internal_session_id: int | None = None
    payment_id: str | None = None
    amount_minor: int | None = None
    currency: str | None = None


@dataclass
class TransferEvent:
    """A verified payout webhook (transfer.success / failed / reversed)."""

    provider: PaymentProvider
    event_key: str
    event_type: str
    transfer_code: str | None = None
    reference: str | None = None
    failure_reason: str | None = None


def parse_session_id(value: Any) -> int | None:
    """Read the internal session id carried in provider metadata."""
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Malformed session reference in payment metadata") from e


class PaymentGateway(ABC):
    """Abstract base class for payment providers."""

    @property
    @abstractmethod
    def provider(self) -> PaymentProvider:
        """Return the provider this gateway talks to."""
        pass

    # ============ Checkout ============

    @abstractmethod
    async def create_checkout(
        self,
        session: CounselingSession,
        amount: Decimal,
        currency: str,
        customer_email: str,
    ) -> CheckoutResult:
        """Create a hosted checkout for a pending session.

        Args:
            session: Persisted session (id assigned)
            amount: Price in major units
            currency: 'usd' or 'ngn'
            customer_email: Paying client's email

        Raises:
            UnsupportedCurrencyError: Currency not handled by this provider
            CheckoutCreationFailed: Provider call failed
        """
        pass

    @abstractmethod
    async def retrieve_payment(self, session: CounselingSession) -> PaymentEvent | None:
        """Ask the provider whether a session's checkout has been paid.

        Used when the client returns from checkout, in case the webhook is
        late or lost. Repeated lookups yield the same event key.

        Returns:
            Payment event, or None while the checkout is unpaid

        Raises:
            PaymentVerificationFailed: Provider lookup failed
        """
        pass

    # ============ Webhooks ============

    @abstractmethod
    def verify_webhook(self, raw_body: bytes, signature: str | None) -> dict[str, Any]:
        """Verify a webhook signature over the raw body and return the event.

        Raises:
            InvalidSignatureError: Signature missing or mismatched
            ValidationError: Body is not valid JSON
        """
        pass

    @abstractmethod
    def parse_event(self, event: dict[str, Any]) -> PaymentEvent | TransferEvent | None:
        """Normalize a verified event. Returns None for event types we ignore."""
        pass

    # ============ Payouts ============

    @abstractmethod
    async def resolve_bank_account(self, account_number: str, bank_code: str) -> ResolvedAccount:
        """Look up the registered name on a bank account.

        Raises:
            AccountResolutionFailed
        """
        pass

    @abstractmethod
    async def create_transfer_recipient(
        self, name: str, account_number: str, bank_code: str
    ) -> str:
        """Register a payout destination and return its recipient code.

        Raises:
            RecipientCreationFailed
        """
        pass

    @abstractmethod
    async def initiate_transfer(
        self, amount: Decimal, recipient_code: str, reference: str, reason: str
    ) -> TransferResult:
        """Send `amount` (major units) to a recipient.

        Raises:
            TransferInitiationFailed
        """
        pass
