"""Stripe gateway - USD card checkout."""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Any

import stripe

from src.core.config import get_settings
from src.core.exceptions import (
    AccountResolutionFailed,
    CheckoutCreationFailed,
    InvalidSignatureError,
    PaymentVerificationFailed,
    RecipientCreationFailed,
    TransferInitiationFailed,
    UnsupportedCurrencyError,
    ValidationError,
)
from src.gateways.base import (
    CheckoutResult,
    PaymentEvent,
    PaymentGateway,
    ResolvedAccount,
    TransferEvent,
    TransferResult,
    parse_session_id,
)
from src.models.session import CounselingSession, PaymentProvider
from src.utils.amount import to_minor_units

logger = logging.getLogger(__name__)

PAYMENT_EVENT_TYPES = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
VERIFIED_EVENT = "checkout.session.verified"


class StripeGateway(PaymentGateway):
    """Stripe Checkout for USD sessions. Payouts are not supported."""

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None) -> None:
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        )
        self.client_url = settings.client_url.rstrip("/")

    @property
    def provider(self) -> PaymentProvider:
        return PaymentProvider.STRIPE

    # ============ Checkout ============

    async def create_checkout(
        self,
        session: CounselingSession,
        amount: Decimal,
        currency: str,
        customer_email: str,
    ) -> CheckoutResult:
        if currency != "usd":
            raise UnsupportedCurrencyError(currency)

        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": "usd",
                        "product_data": {"name": "Counseling session"},
                        "unit_amount": to_minor_units(amount),
                    },
                    "quantity": 1,
                }
            ],
            "customer_email": customer_email,
            "client_reference_id": str(session.id),
            "metadata": {"internalSessionId": str(session.id)},
            "success_url": f"{self.client_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.client_url}/payment-cancel",
        }

        try:
            checkout = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self.api_key, **params
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed for session {session.id}: {e}")
            raise CheckoutCreationFailed(
                "Stripe checkout could not be created", {"provider_error": str(e)}
            ) from e

        logger.info(f"Stripe checkout {checkout.id} created for session {session.id}")
        return CheckoutResult(
            provider=self.provider,
            redirect_url=checkout.url,
            provider_session_id=checkout.id,
        )

    async def retrieve_payment(self, session: CounselingSession) -> PaymentEvent | None:
        if not session.stripe_checkout_session_id:
            return None
        try:
            checkout = await asyncio.to_thread(
                stripe.checkout.Session.retrieve,
                session.stripe_checkout_session_id,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout lookup failed for session {session.id}: {e}")
            raise PaymentVerificationFailed(
                "Stripe checkout could not be retrieved", {"provider_error": str(e)}
            ) from e

        obj = {
            "id": checkout.id,
            "payment_status": checkout.payment_status,
            "payment_intent": checkout.payment_intent,
            "amount_total": checkout.amount_total,
            "currency": checkout.currency,
            "metadata": {"internalSessionId": str(session.id)},
        }
        return self._payment_event(f"{VERIFIED_EVENT}:{checkout.id}", VERIFIED_EVENT, obj)

    # ============ Webhooks ============

    def verify_webhook(self, raw_body: bytes, signature: str | None) -> dict[str, Any]:
        if not self.webhook_secret or not signature:
            raise InvalidSignatureError("Missing Stripe signature")
        try:
            stripe.Webhook.construct_event(raw_body, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignatureError("Invalid Stripe signature") from e
        except ValueError as e:
            raise ValidationError("Malformed Stripe payload") from e
        event = json.loads(raw_body)
        if not isinstance(event, dict):
            raise ValidationError("Malformed Stripe payload")
        return event

    def parse_event(self, event: dict[str, Any]) -> PaymentEvent | TransferEvent | None:
        event_type = event.get("type", "")
        if event_type not in PAYMENT_EVENT_TYPES:
            return None
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict) or "id" not in event:
            raise ValidationError("Malformed Stripe event")
        return self._payment_event(event["id"], event_type, obj)

    def _payment_event(
        self, event_key: str, event_type: str, obj: dict[str, Any]
    ) -> PaymentEvent | None:
        """Build a payment event from a checkout session, None unless it is paid."""
        if obj.get("payment_status") not in ("paid", "no_payment_required"):
            logger.info(f"Stripe checkout {obj.get('id')} not paid, ignoring")
            return None

        metadata = obj.get("metadata") or {}
        return PaymentEvent(
            provider=self.provider,
            event_key=event_key,
            event_type=event_type,
            checkout_id=obj.get("id"),
            internal_session_id=parse_session_id(metadata.get("internalSessionId")),
            payment_id=obj.get("payment_intent"),
            amount_minor=obj.get("amount_total"),
            currency=obj.get("currency"),
        )

    # ============ Payouts ============

    async def resolve_bank_account(self, account_number: str, bank_code: str) -> ResolvedAccount:
        raise AccountResolutionFailed("Bank account resolution is not supported by Stripe")

    async def create_transfer_recipient(
        self, name: str, account_number: str, bank_code: str
    ) -> str:
        raise RecipientCreationFailed("Transfer recipients are not supported by Stripe")

    async def initiate_transfer(
        self, amount: Decimal, recipient_code: str, reference: str, reason: str
    ) -> TransferResult:
        raise TransferInitiationFailed("Payouts are not supported by Stripe")
