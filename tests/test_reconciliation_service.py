from decimal import Decimal

import pytest
from sqlmodel import select

from conftest import FakeVideoService, add_session, wallet_of
from src.core.exceptions import (
    AuthorizationError,
    LedgerCreditError,
    PaymentVerificationFailed,
    SessionNotFoundError,
)
from src.gateways.base import PaymentEvent
from src.models.connection_request import ConnectionRequest
from src.models.session import PaymentProvider, SessionStatus
from src.models.transaction import Transaction
from src.models.wallet import Currency
from src.models.webhook import ProcessedEvent
from src.services.ledger_service import LedgerService
from src.services.notification_service import SESSION_BOOKED, WALLET_UPDATED
from src.services.reconciliation_service import ReconciliationOutcome, ReconciliationService


def stripe_event(session, event_id="evt_1", amount_minor=10000) -> PaymentEvent:
    return PaymentEvent(
        provider=PaymentProvider.STRIPE,
        event_key=event_id,
        event_type="checkout.session.completed",
        checkout_id=session.stripe_checkout_session_id,
        internal_session_id=session.id,
        payment_id="pi_test_1",
        amount_minor=amount_minor,
        currency="usd",
    )


def paystack_event(session, charge_id=4099260516, amount_minor=2500000) -> PaymentEvent:
    return PaymentEvent(
        provider=PaymentProvider.PAYSTACK,
        event_key=f"charge.success:{charge_id}",
        event_type="charge.success",
        reference=session.payment_reference,
        internal_session_id=session.id,
        payment_id=str(charge_id),
        amount_minor=amount_minor,
        currency="ngn",
    )


@pytest.fixture
def service_factory(db, video, notifications):
    def build(**kwargs):
        kwargs.setdefault("video_service", video)
        kwargs.setdefault("notification_service", notifications)
        return ReconciliationService(db, fee_rate=Decimal("0.10"), **kwargs)

    return build


@pytest.mark.asyncio
async def test_payment_marks_paid_and_credits_net_of_fee(
    db, client_user, counselor, service_factory
):
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")

    result = await service_factory().apply_payment(stripe_event(session))

    assert result.outcome == ReconciliationOutcome.APPLIED
    assert result.amount_earned == Decimal("90.00")
    await db.refresh(session)
    assert session.status == SessionStatus.PAID
    assert session.payment_intent_id == "pi_test_1"
    assert session.amount_paid == Decimal("100")
    assert session.paid_at is not None
    wallet = await wallet_of(db, counselor.id)
    assert wallet.balance == Decimal("90")
    assert wallet.currency == Currency.USD


@pytest.mark.asyncio
async def test_same_event_twice_credits_once(db, client_user, counselor, service_factory):
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")
    session_id, counselor_id = session.id, counselor.id
    service = service_factory()

    first = await service.apply_payment(stripe_event(session))
    second = await service.apply_payment(stripe_event(session))

    assert first.outcome == ReconciliationOutcome.APPLIED
    assert second.outcome == ReconciliationOutcome.DUPLICATE
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("90")
    credits = (await db.execute(select(Transaction))).scalars().all()
    assert len(credits) == 1
    assert credits[0].reference == f"session:{session_id}"


@pytest.mark.asyncio
async def test_second_event_for_paid_session_is_noop(
    db, client_user, counselor, service_factory
):
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")
    service = service_factory()

    await service.apply_payment(stripe_event(session, event_id="evt_completed"))
    async_succeeded = stripe_event(session, event_id="evt_async")
    result = await service.apply_payment(async_succeeded)

    assert result.outcome == ReconciliationOutcome.ALREADY_PROCESSED
    wallet = await wallet_of(db, counselor.id)
    assert wallet.balance == Decimal("90")
    markers = (await db.execute(select(ProcessedEvent))).scalars().all()
    assert {m.event_key for m in markers} == {"evt_completed", "evt_async"}


@pytest.mark.asyncio
async def test_paystack_payment_resolved_by_reference(
    db, client_user, counselor, service_factory
):
    session = await add_session(
        db,
        client_user,
        counselor,
        currency=Currency.NGN,
        price=Decimal("25000"),
        payment_reference="qs_reference",
    )

    result = await service_factory().apply_payment(paystack_event(session))

    assert result.outcome == ReconciliationOutcome.APPLIED
    wallet = await wallet_of(db, counselor.id)
    assert wallet.currency == Currency.NGN
    assert wallet.balance == Decimal("22500")


@pytest.mark.asyncio
async def test_canceled_session_is_not_credited(db, client_user, counselor, service_factory):
    session = await add_session(
        db,
        client_user,
        counselor,
        status=SessionStatus.CANCELED,
        stripe_checkout_session_id="cs_1",
    )

    result = await service_factory().apply_payment(stripe_event(session))

    assert result.outcome == ReconciliationOutcome.ALREADY_PROCESSED
    await db.refresh(session)
    assert session.status == SessionStatus.CANCELED
    assert await wallet_of(db, counselor.id) is None


@pytest.mark.asyncio
async def test_unknown_session_raises_and_writes_nothing(db, service_factory):
    event = PaymentEvent(
        provider=PaymentProvider.STRIPE,
        event_key="evt_orphan",
        event_type="checkout.session.completed",
        checkout_id="cs_missing",
    )

    with pytest.raises(SessionNotFoundError):
        await service_factory().apply_payment(event)
    await db.rollback()

    markers = (await db.execute(select(ProcessedEvent))).scalars().all()
    assert markers == []


@pytest.mark.asyncio
async def test_metadata_id_ignored_for_other_provider(
    db, client_user, counselor, service_factory
):
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")
    event = PaymentEvent(
        provider=PaymentProvider.PAYSTACK,
        event_key="charge.success:1",
        event_type="charge.success",
        reference="qs_unknown",
        internal_session_id=session.id,
    )

    with pytest.raises(SessionNotFoundError):
        await service_factory().apply_payment(event)


@pytest.mark.asyncio
async def test_video_failure_does_not_block_payment(
    db, client_user, counselor, service_factory
):
    counselor_id = counselor.id
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")

    result = await service_factory(video_service=FakeVideoService(fail=True)).apply_payment(
        stripe_event(session)
    )

    assert result.outcome == ReconciliationOutcome.APPLIED
    await db.refresh(session)
    assert session.status == SessionStatus.PAID
    assert session.video_call_url is None
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("90")


@pytest.mark.asyncio
async def test_side_effects_after_payment(
    db, client_user, counselor, service_factory, video, notifications
):
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")

    await service_factory().apply_payment(stripe_event(session))

    await db.refresh(session)
    assert video.rooms == [session.id]
    assert session.video_call_url.endswith(f"session-{session.id}")

    requests = (await db.execute(select(ConnectionRequest))).scalars().all()
    assert [(r.client_id, r.counselor_id) for r in requests] == [(client_user.id, counselor.id)]

    events = [(user_id, event) for user_id, event, _ in notifications.published]
    assert (client_user.id, SESSION_BOOKED) in events
    assert (counselor.id, SESSION_BOOKED) in events
    assert (counselor.id, WALLET_UPDATED) in events
    wallet_event = next(d for u, e, d in notifications.published if e == WALLET_UPDATED)
    assert wallet_event["amountEarned"] == "90.00"


@pytest.mark.asyncio
async def test_amount_mismatch_credits_on_price(db, client_user, counselor, service_factory):
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")

    result = await service_factory().apply_payment(stripe_event(session, amount_minor=5000))

    assert result.outcome == ReconciliationOutcome.APPLIED
    await db.refresh(session)
    assert session.amount_paid == Decimal("50")
    wallet = await wallet_of(db, counselor.id)
    assert wallet.balance == Decimal("90")


@pytest.mark.asyncio
async def test_credit_failure_rolls_back_payment(db, client_user, counselor, service_factory):
    counselor_id = counselor.id
    await LedgerService(db).credit(counselor_id, Decimal("40"), Currency.USD, "Earnings", "x:1")
    await db.commit()
    session = await add_session(
        db,
        client_user,
        counselor,
        currency=Currency.NGN,
        price=Decimal("25000"),
        payment_reference="qs_reference",
    )
    session_id = session.id
    event = paystack_event(session)

    with pytest.raises(LedgerCreditError) as exc_info:
        await service_factory().apply_payment(event)

    assert exc_info.value.details["session_id"] == session_id
    await db.refresh(session)
    assert session.status == SessionStatus.PENDING_PAYMENT
    assert session.paid_at is None
    assert (await db.execute(select(ProcessedEvent))).scalars().all() == []
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("40")


# ============ Payment verification ============


@pytest.fixture
def ngn_session_factory(db, client_user, counselor):
    async def build(**fields):
        return await add_session(
            db,
            client_user,
            counselor,
            currency=Currency.NGN,
            price=Decimal("25000"),
            payment_reference="qs_reference",
            **fields,
        )

    return build


@pytest.mark.asyncio
async def test_verify_applies_paid_checkout(
    db, client_user, counselor, ngn_session_factory, service_factory, paystack_gateway
):
    counselor_id = counselor.id
    session = await ngn_session_factory()
    paystack_gateway.paid_event = paystack_event(session)

    verified, outcome = await service_factory(gateway=paystack_gateway).verify_payment(
        session.id, client_user
    )

    assert outcome == ReconciliationOutcome.APPLIED
    assert verified.status == SessionStatus.PAID
    assert paystack_gateway.calls == [("retrieve_payment", session.id)]
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("22500")


@pytest.mark.asyncio
async def test_verify_then_webhook_credits_once(
    db, client_user, counselor, ngn_session_factory, service_factory, paystack_gateway
):
    counselor_id = counselor.id
    session = await ngn_session_factory()
    session_id = session.id
    event = paystack_event(session)
    paystack_gateway.paid_event = event
    service = service_factory(gateway=paystack_gateway)

    await service.verify_payment(session_id, client_user)
    webhook = await service.apply_payment(event)

    assert webhook.outcome == ReconciliationOutcome.DUPLICATE
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("22500")
    credits = (await db.execute(select(Transaction))).scalars().all()
    assert [t.reference for t in credits] == [f"session:{session_id}"]


@pytest.mark.asyncio
async def test_stripe_verify_and_webhook_credit_once(
    db, client_user, counselor, service_factory, stripe_gateway
):
    counselor_id = counselor.id
    session = await add_session(db, client_user, counselor, stripe_checkout_session_id="cs_1")
    stripe_gateway.paid_event = stripe_event(session, event_id="checkout.session.verified:cs_1")
    webhook_event = stripe_event(session, event_id="evt_1")
    service = service_factory(gateway=stripe_gateway)

    _, verified = await service.verify_payment(session.id, client_user)
    webhook = await service.apply_payment(webhook_event)

    assert verified == ReconciliationOutcome.APPLIED
    assert webhook.outcome == ReconciliationOutcome.ALREADY_PROCESSED
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("90")


@pytest.mark.asyncio
async def test_verify_unpaid_checkout_changes_nothing(
    db, client_user, counselor, ngn_session_factory, service_factory, paystack_gateway
):
    session = await ngn_session_factory()

    verified, outcome = await service_factory(gateway=paystack_gateway).verify_payment(
        session.id, client_user
    )

    assert outcome == ReconciliationOutcome.NOT_PAID
    assert verified.status == SessionStatus.PENDING_PAYMENT
    assert await wallet_of(db, counselor.id) is None


@pytest.mark.asyncio
async def test_verify_skips_provider_for_paid_session(
    db, counselor, ngn_session_factory, service_factory, paystack_gateway
):
    session = await ngn_session_factory(status=SessionStatus.PAID)

    _, outcome = await service_factory(gateway=paystack_gateway).verify_payment(
        session.id, counselor
    )

    assert outcome == ReconciliationOutcome.ALREADY_PROCESSED
    assert paystack_gateway.calls == []


@pytest.mark.asyncio
async def test_verify_requires_party_to_session(
    db, other_user, ngn_session_factory, service_factory, paystack_gateway
):
    session = await ngn_session_factory()

    with pytest.raises(AuthorizationError):
        await service_factory(gateway=paystack_gateway).verify_payment(session.id, other_user)
    assert paystack_gateway.calls == []


@pytest.mark.asyncio
async def test_verify_lookup_failure_propagates(
    db, client_user, ngn_session_factory, service_factory, paystack_gateway
):
    session = await ngn_session_factory()
    paystack_gateway.retrieve_error = PaymentVerificationFailed("Transaction reference not found")

    with pytest.raises(PaymentVerificationFailed):
        await service_factory(gateway=paystack_gateway).verify_payment(session.id, client_user)

    await db.refresh(session)
    assert session.status == SessionStatus.PENDING_PAYMENT
