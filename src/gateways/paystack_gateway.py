"""Paystack gateway - NGN checkout and bank payouts."""

import hashlib
import hmac
import json
import logging
from decimal import Decimal
from typing import Any

import httpx

from src.core.config import get_settings
from src.core.exceptions import (
    AccountResolutionFailed,
    CheckoutCreationFailed,
    GatewayError,
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

CHARGE_EVENT = "charge.success"
TRANSFER_EVENTS = ("transfer.success", "transfer.failed", "transfer.reversed")


def payment_reference_for(session_id: int) -> str:
    """Transaction reference sent to Paystack for a session."""
    return f"qs_{session_id}"


def compute_signature(secret_key: str, raw_body: bytes) -> str:
    """HMAC-SHA512 hex digest Paystack sends in x-paystack-signature."""
    return hmac.new(secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


class PaystackGateway(PaymentGateway):
    """Paystack for NGN checkout, account resolution and transfers."""

    def __init__(self, secret_key: str | None = None, base_url: str | None = None) -> None:
        settings = get_settings()
        self.secret_key = secret_key if secret_key is not None else settings.paystack_secret_key
        self.base_url = (base_url or settings.paystack_base_url).rstrip("/")
        self.client_url = settings.client_url.rstrip("/")
        self.timeout = settings.http_timeout_seconds

    @property
    def provider(self) -> PaymentProvider:
        return PaymentProvider.PAYSTACK

    async def _request(
        self,
        method: str,
        path: str,
        error_cls: type[GatewayError],
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call the Paystack API and return its `data` object.

        Non-2xx responses and `"status": false` bodies raise `error_cls`.
        """
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                response = await client.request(
                    method, path, headers=headers, json=json_body, params=params
                )
        except httpx.HTTPError as e:
            logger.error(f"Paystack {method} {path} failed: {e}")
            raise error_cls("Payment provider unreachable", {"provider_error": str(e)}) from e

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if not response.is_success or body.get("status") is not True:
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"Paystack {method} {path} rejected: {message}")
            raise error_cls(message, {"status_code": response.status_code})

        return body.get("data") or {}

    # ============ Checkout ============

    async def create_checkout(
        self,
        session: CounselingSession,
        amount: Decimal,
        currency: str,
        customer_email: str,
    ) -> CheckoutResult:
        if currency != "ngn":
            raise UnsupportedCurrencyError(currency)

        reference = payment_reference_for(session.id)  # type: ignore[arg-type]
        data = await self._request(
            "POST",
            "/transaction/initialize",
            CheckoutCreationFailed,
            json_body={
                "email": customer_email,
                "amount": to_minor_units(amount),
                "currency": "NGN",
                "reference": reference,
                "callback_url": f"{self.client_url}/payment-success?reference={reference}",
                "metadata": {
                    "internalSessionId": str(session.id),
                    "clientId": str(session.client_id),
                    "counselorId": str(session.counselor_id),
                },
            },
        )

        logger.info(f"Paystack checkout {reference} created for session {session.id}")
        return CheckoutResult(
            provider=self.provider,
            redirect_url=data["authorization_url"],
            provider_session_id=data.get("reference") or reference,
        )

    async def retrieve_payment(self, session: CounselingSession) -> PaymentEvent | None:
        if not session.payment_reference:
            return None
        data = await self._request(
            "GET",
            f"/transaction/verify/{session.payment_reference}",
            PaymentVerificationFailed,
        )
        if data.get("status") != "success":
            logger.info(
                f"Paystack transaction {session.payment_reference} is {data.get('status')}"
            )
            return None
        return self._charge_event(data)

    # ============ Webhooks ============

    def verify_webhook(self, raw_body: bytes, signature: str | None) -> dict[str, Any]:
        if not self.secret_key or not signature:
            raise InvalidSignatureError("Missing Paystack signature")
        expected = compute_signature(self.secret_key, raw_body)
        if not hmac.compare_digest(expected, signature.strip()):
            raise InvalidSignatureError("Invalid Paystack signature")
        try:
            event = json.loads(raw_body)
        except ValueError as e:
            raise ValidationError("Malformed Paystack payload") from e
        if not isinstance(event, dict):
            raise ValidationError("Malformed Paystack payload")
        return event

    def parse_event(self, event: dict[str, Any]) -> PaymentEvent | TransferEvent | None:
        event_type = event.get("event", "")
        if event_type != CHARGE_EVENT and event_type not in TRANSFER_EVENTS:
            return None

        data = event.get("data")
        if not isinstance(data, dict):
            raise ValidationError("Malformed Paystack event", {"event": event_type})

        if event_type == CHARGE_EVENT:
            return self._charge_event(data)

        return TransferEvent(
            provider=self.provider,
            event_key=f"{event_type}:{data.get('id') or data.get('transfer_code')}",
            event_type=event_type,
            transfer_code=data.get("transfer_code"),
            reference=data.get("reference"),
            failure_reason=data.get("failure_reason"),
        )

    def _charge_event(self, data: dict[str, Any]) -> PaymentEvent:
        """Build a payment event from a successful transaction.

        Webhooks and verify lookups share the event key, so a charge seen
        through both is applied once.
        """
        metadata = data.get("metadata")
        internal_id = metadata.get("internalSessionId") if isinstance(metadata, dict) else None
        provider_id = data.get("id")
        return PaymentEvent(
            provider=self.provider,
            event_key=f"{CHARGE_EVENT}:{provider_id or data.get('reference')}",
            event_type=CHARGE_EVENT,
            reference=data.get("reference"),
            internal_session_id=parse_session_id(internal_id),
            payment_id=str(provider_id) if provider_id is not None else None,
            amount_minor=data.get("amount"),
            currency=(data.get("currency") or "").lower() or None,
        )

    # ============ Payouts ============

    async def resolve_bank_account(self, account_number: str, bank_code: str) -> ResolvedAccount:
        data = await self._request(
            "GET",
            "/bank/resolve",
            AccountResolutionFailed,
            params={"account_number": account_number, "bank_code": bank_code},
        )
        return ResolvedAccount(
            account_name=data.get("account_name", ""),
            account_number=data.get("account_number", account_number),
        )

    async def create_transfer_recipient(
        self, name: str, account_number: str, bank_code: str
    ) -> str:
        data = await self._request(
            "POST",
            "/transferrecipient",
            RecipientCreationFailed,
            json_body={
                "type": "nuban",
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": "NGN",
            },
        )
        return data["recipient_code"]

    async def initiate_transfer(
        self, amount: Decimal, recipient_code: str, reference: str, reason: str
    ) -> TransferResult:
        data = await self._request(
            "POST",
            "/transfer",
            TransferInitiationFailed,
            json_body={
                "source": "balance",
                "amount": to_minor_units(amount),
                "recipient": recipient_code,
                "reference": reference,
                "reason": reason,
            },
        )
        return TransferResult(
            transfer_code=data["transfer_code"],
            status=data.get("status", "pending"),
        )
