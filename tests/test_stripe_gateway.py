import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from src.core.exceptions import (
    InvalidSignatureError,
    PaymentVerificationFailed,
    TransferInitiationFailed,
    ValidationError,
)
from src.gateways.stripe_gateway import StripeGateway
from src.models.session import CounselingSession

SECRET = "whsec_test_secret"


def sign(payload: bytes, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_event(payment_status: str = "paid") -> dict:
    return {
        "id": "evt_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_7",
                "object": "checkout.session",
                "payment_status": payment_status,
                "payment_intent": "pi_123",
                "amount_total": 10000,
                "currency": "usd",
                "metadata": {"internalSessionId": "7"},
            }
        },
    }


@pytest.fixture
def gateway() -> StripeGateway:
    return StripeGateway(api_key="sk_test_stripe", webhook_secret=SECRET)


def test_verify_webhook_accepts_signed_body(gateway):
    body = json.dumps(checkout_event()).encode()

    assert gateway.verify_webhook(body, sign(body))["id"] == "evt_1"


def test_verify_webhook_rejects_tampered_body(gateway):
    body = json.dumps(checkout_event()).encode()
    header = sign(body)

    with pytest.raises(InvalidSignatureError):
        gateway.verify_webhook(body.replace(b"10000", b"1"), header)


def test_verify_webhook_rejects_other_secret(gateway):
    body = json.dumps(checkout_event()).encode()

    with pytest.raises(InvalidSignatureError):
        gateway.verify_webhook(body, sign(body, secret="whsec_other"))


def test_parse_paid_checkout(gateway):
    event = gateway.parse_event(checkout_event())

    assert event.event_key == "evt_1"
    assert event.checkout_id == "cs_test_7"
    assert event.internal_session_id == 7
    assert event.payment_id == "pi_123"
    assert event.amount_minor == 10000


def test_unpaid_checkout_ignored(gateway):
    assert gateway.parse_event(checkout_event(payment_status="unpaid")) is None
    assert gateway.parse_event({"id": "evt_2", "type": "charge.refunded"}) is None


@pytest.mark.asyncio
async def test_create_checkout(gateway):
    session = CounselingSession(id=7, client_id=1, counselor_id=2)
    created = MagicMock(id="cs_test_7", url="https://checkout.stripe.com/c/pay/cs_test_7")

    with patch("stripe.checkout.Session.create", return_value=created) as create:
        result = await gateway.create_checkout(
            session, Decimal("100"), "usd", "client@example.com"
        )

    kwargs = create.call_args.kwargs
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 10000
    assert kwargs["metadata"] == {"internalSessionId": "7"}
    assert kwargs["customer_email"] == "client@example.com"
    assert result.provider_session_id == "cs_test_7"
    assert result.redirect_url == "https://checkout.stripe.com/c/pay/cs_test_7"


@pytest.mark.asyncio
async def test_payouts_unsupported(gateway):
    with pytest.raises(TransferInitiationFailed):
        await gateway.initiate_transfer(Decimal("10"), "rcp", "wd_1", "Payout")


def test_malformed_events_rejected(gateway):
    with pytest.raises(ValidationError):
        gateway.parse_event({"id": "evt_3", "type": "checkout.session.completed", "data": []})

    event = checkout_event()
    event["data"]["object"]["metadata"] = {"internalSessionId": "seven"}
    with pytest.raises(ValidationError):
        gateway.parse_event(event)


# ============ Payment verification ============


@pytest.mark.asyncio
async def test_retrieve_paid_checkout(gateway):
    session = CounselingSession(
        id=7, client_id=1, counselor_id=2, stripe_checkout_session_id="cs_test_7"
    )
    checkout = MagicMock(
        id="cs_test_7",
        payment_status="paid",
        payment_intent="pi_123",
        amount_total=10000,
        currency="usd",
    )

    with patch("stripe.checkout.Session.retrieve", return_value=checkout) as retrieve:
        event = await gateway.retrieve_payment(session)

    assert retrieve.call_args.args == ("cs_test_7",)
    assert retrieve.call_args.kwargs == {"api_key": "sk_test_stripe"}
    assert event.event_key == "checkout.session.verified:cs_test_7"
    assert event.checkout_id == "cs_test_7"
    assert event.internal_session_id == 7
    assert event.payment_id == "pi_123"


@pytest.mark.asyncio
async def test_retrieve_unpaid_checkout(gateway):
    session = CounselingSession(
        id=7, client_id=1, counselor_id=2, stripe_checkout_session_id="cs_test_7"
    )
    checkout = MagicMock(id="cs_test_7", payment_status="unpaid")

    with patch("stripe.checkout.Session.retrieve", return_value=checkout):
        assert await gateway.retrieve_payment(session) is None


@pytest.mark.asyncio
async def test_retrieve_failure(gateway):
    session = CounselingSession(
        id=7, client_id=1, counselor_id=2, stripe_checkout_session_id="cs_test_7"
    )
    error = stripe.InvalidRequestError("No such checkout.session", "id")

    with patch("stripe.checkout.Session.retrieve", side_effect=error):
        with pytest.raises(PaymentVerificationFailed):
            await gateway.retrieve_payment(session)
