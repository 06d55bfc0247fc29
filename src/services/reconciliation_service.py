"""Reconciliation Service - apply verified payment events exactly once.

A payment event moves a session from pending_payment to paid and credits
the counselor's wallet, net of the platform fee. The processed-event
marker, the status change and the wallet credit commit together, so a
crash or a duplicate delivery can never leave a session paid but not
credited (or credited twice).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.config import get_settings
from src.core.exceptions import AppError, LedgerCreditError, SessionNotFoundError
from src.gateways.base import PaymentEvent, PaymentGateway
from src.gateways.factory import get_payment_gateway
from src.models.connection_request import ConnectionRequest, ConnectionRequestStatus
from src.models.session import CounselingSession, PaymentProvider, SessionStatus
from src.models.transaction import session_credit_reference
from src.models.user import User
from src.models.webhook import ProcessedEvent
from src.services.ledger_service import LedgerService
from src.services.notification_service import (
    SESSION_BOOKED,
    WALLET_UPDATED,
    NotificationService,
)
from src.services.session_service import SessionService
from src.services.video_service import VideoService
from src.utils.amount import net_of_fee, to_major_units
from src.utils.helpers import format_utc_datetime, utc_now

logger = logging.getLogger(__name__)


class ReconciliationOutcome(str, Enum):
    """How a payment event or verification was handled. All map to HTTP 200."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    ALREADY_PROCESSED = "already_processed"
    NOT_PAID = "not_paid"


@dataclass
class ReconciliationResult:
    outcome: ReconciliationOutcome
    session_id: int | None = None
    amount_earned: Decimal | None = None


class ReconciliationService:
    """Service that turns payment webhooks into paid sessions and wallet credits."""

    def __init__(
        self,
        db: AsyncSession,
        video_service: VideoService | None = None,
        notification_service: NotificationService | None = None,
        fee_rate: Decimal | None = None,
        gateway: PaymentGateway | None = None,
    ):
        self.db = db
        self._gateway = gateway
        self.ledger = LedgerService(db)
        self.video_service = video_service or VideoService()
        self.notifications = notification_service or NotificationService(db)
        self.fee_rate = fee_rate if fee_rate is not None else get_settings().platform_fee_rate

    def gateway_for(self, provider: PaymentProvider) -> PaymentGateway:
        if self._gateway is not None:
            return self._gateway
        return get_payment_gateway(provider)

    # ============ Lookup ============

    async def _find_session(self, event: PaymentEvent) -> CounselingSession | None:
        """Resolve the session by provider reference, then by our own id in metadata."""
        if event.checkout_id:
            result = await self.db.execute(
                select(CounselingSession)
                .where(CounselingSession.stripe_checkout_session_id == event.checkout_id)
                .execution_options(populate_existing=True)
            )
            session = result.scalar_one_or_none()
            if session:
                return session

        if event.reference:
            result = await self.db.execute(
                select(CounselingSession)
                .where(CounselingSession.payment_reference == event.reference)
                .execution_options(populate_existing=True)
            )
            session = result.scalar_one_or_none()
            if session:
                return session

        if event.internal_session_id:
            session = await self.db.get(
                CounselingSession, event.internal_session_id, populate_existing=True
            )
            if session and session.provider == event.provider:
                return session

        return None

    # ============ Payment events ============

    async def apply_payment(self, event: PaymentEvent) -> ReconciliationResult:
        """Apply a verified payment-succeeded event.

        Every failure after the event marker is flushed rolls the whole
        transaction back, so a provider retry re-applies cleanly.

        Args:
            event: Normalized event from the gateway or a payment verification

        Returns:
            Outcome; APPLIED only the first time the session becomes paid

        Raises:
            SessionNotFoundError: No session matches the event (nothing written)
            LedgerCreditError: Counselor wallet could not be credited (nothing written)
            SQLAlchemyError: Database failure; caller responds 500 so the provider retries
        """
        self.db.add(
            ProcessedEvent(
                provider=event.provider,
                event_key=event.event_key,
                event_type=event.event_type,
            )
        )
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Duplicate {event.provider.value} event {event.event_key}, skipping")
            return ReconciliationResult(outcome=ReconciliationOutcome.DUPLICATE)

        try:
            result = await self._mark_paid_and_credit(event)
        except Exception:
            await self.db.rollback()
            raise

        if result.outcome == ReconciliationOutcome.APPLIED:
            await self.run_side_effects(
                result.session_id, result.amount_earned  # type: ignore[arg-type]
            )
        return result

    async def _mark_paid_and_credit(self, event: PaymentEvent) -> ReconciliationResult:
        session = await self._find_session(event)
        if session is None:
            logger.error(
                f"No session for {event.provider.value} event {event.event_key} "
                f"(checkout={event.checkout_id}, reference={event.reference})"
            )
            raise SessionNotFoundError(
                "Session not found for payment event",
                {"checkout_id": event.checkout_id, "reference": event.reference},
            )

        session_id: int = session.id  # type: ignore[assignment]
        counselor_id = session.counselor_id
        amount_paid = None
        if event.amount_minor is not None:
            amount_paid = to_major_units(event.amount_minor)
        now = utc_now()
        result = await self.db.execute(
            update(CounselingSession)
            .where(
                CounselingSession.id == session_id,
                CounselingSession.status == SessionStatus.PENDING_PAYMENT,
            )
            .values(
                status=SessionStatus.PAID,
                payment_intent_id=event.payment_id,
                amount_paid=amount_paid,
                paid_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # Keep the marker so redeliveries of this event short-circuit
            await self.db.commit()
            if session.status == SessionStatus.CANCELED:
                logger.warning(
                    f"Payment {event.payment_id} captured for canceled session {session_id}; "
                    "refund must be issued manually"
                )
            else:
                logger.info(f"Session {session_id} already {session.status.value}, no-op")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.ALREADY_PROCESSED, session_id=session_id
            )

        if amount_paid is not None and amount_paid != session.price:
            logger.warning(
                f"Session {session_id} paid {amount_paid} but priced {session.price}; "
                "crediting on price"
            )

        amount_earned = net_of_fee(session.price, self.fee_rate)
        try:
            await self.ledger.credit(
                user_id=counselor_id,
                amount=amount_earned,
                currency=session.currency,
                description=f"Earnings for session #{session_id}",
                reference=session_credit_reference(session_id),
            )
        except AppError as e:
            # Payment is captured; the provider must keep retrying until this is fixed
            logger.error(
                f"Session {session_id} paid via {event.provider.value} but counselor "
                f"{counselor_id} was not credited: {e.message}"
            )
            raise LedgerCreditError(
                "Counselor wallet could not be credited",
                {"session_id": session_id, **e.details},
            ) from e
        await self.db.commit()

        logger.info(
            f"Session {session_id} paid via {event.provider.value}; "
            f"credited {amount_earned} {session.currency.value} to counselor {counselor_id}"
        )
        return ReconciliationResult(
            outcome=ReconciliationOutcome.APPLIED,
            session_id=session_id,
            amount_earned=amount_earned,
        )

    # ============ Payment verification ============

    async def verify_payment(
        self, session_id: int, user: User
    ) -> tuple[CounselingSession, ReconciliationOutcome]:
        """Confirm a pending session's payment with the provider directly.

        Covers a webhook that is late or lost. A paid lookup goes through
        apply_payment, so it and the webhook credit the counselor once.

        Returns:
            (fresh session, outcome); NOT_PAID while the checkout is unpaid

        Raises:
            NotFoundError: Unknown session
            AuthorizationError: User is not a party to the session
            PaymentVerificationFailed: Provider lookup failed
            LedgerCreditError: Counselor wallet could not be credited
        """
        session = await SessionService(self.db).get_session_for(session_id, user)
        await self.db.refresh(session)
        if session.status != SessionStatus.PENDING_PAYMENT:
            return session, ReconciliationOutcome.ALREADY_PROCESSED

        event = await self.gateway_for(session.provider).retrieve_payment(session)
        if event is None:
            logger.info(f"Session {session_id} not yet paid at {session.provider.value}")
            return session, ReconciliationOutcome.NOT_PAID

        result = await self.apply_payment(event)
        await self.db.refresh(session)
        return session, result.outcome

    # ============ Best-effort side effects ============

    async def run_side_effects(self, session_id: int, amount_earned: Decimal) -> None:
        """Video room, chat request and notifications. Failures never propagate."""
        session = await self.db.get(CounselingSession, session_id)
        if session is None:
            return
        # Plain values survive a rollback in one of the steps below
        client_id = session.client_id
        counselor_id = session.counselor_id
        currency = session.currency.value
        starts_at = session.date

        video_call_url = session.video_call_url or await self._attach_video_room(session)
        await self._open_connection_request(session_id, client_id, counselor_id)

        booked = {
            "sessionId": session_id,
            "date": format_utc_datetime(starts_at),
            "videoCallUrl": video_call_url,
        }
        await self.notifications.publish(client_id, SESSION_BOOKED, booked)
        await self.notifications.publish(counselor_id, SESSION_BOOKED, booked)

        try:
            wallet = await self.ledger.get_wallet(counselor_id)
            await self.notifications.publish(
                counselor_id,
                WALLET_UPDATED,
                {
                    "balance": str(wallet.balance) if wallet else None,
                    "amountEarned": str(amount_earned),
                    "currency": currency,
                },
            )
            counselor = await self.db.get(User, counselor_id)
            if counselor:
                await self.notifications.send_push(
                    counselor,
                    title="New session booked",
                    body=f"A client booked a session on {starts_at:%Y-%m-%d %H:%M} UTC",
                    url="/sessions",
                )
        except Exception as e:
            logger.warning(f"Notifications for session {session_id} incomplete: {e}")

    async def _attach_video_room(self, session: CounselingSession) -> str | None:
        session_id = session.id
        try:
            room_url = await self.video_service.create_room(session)
            await self.db.execute(
                update(CounselingSession)
                .where(CounselingSession.id == session_id)
                .values(video_call_url=room_url, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return room_url
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Video room for session {session_id} not created: {e}")
            return None

    async def _open_connection_request(
        self, session_id: int, client_id: int, counselor_id: int
    ) -> None:
        try:
            result = await self.db.execute(
                select(ConnectionRequest).where(
                    ConnectionRequest.client_id == client_id,
                    ConnectionRequest.counselor_id == counselor_id,
                    ConnectionRequest.status.in_(  # type: ignore[attr-defined]
                        [ConnectionRequestStatus.PENDING, ConnectionRequestStatus.ACCEPTED]
                    ),
                )
            )
            if result.first() is None:
                self.db.add(ConnectionRequest(client_id=client_id, counselor_id=counselor_id))
                await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Connection request for session {session_id} not created: {e}")
