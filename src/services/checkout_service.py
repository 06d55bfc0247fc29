"""Checkout Service - book a session and open a hosted provider checkout."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.core.exceptions import NotFoundError, ValidationError
from src.gateways.base import CheckoutResult, PaymentGateway
from src.gateways.factory import get_payment_gateway, provider_for_currency
from src.models.session import CounselingSession, PaymentProvider
from src.models.user import User, UserRole
from src.models.wallet import Currency
from src.services.ledger_service import LedgerService
from src.utils.helpers import to_naive_utc

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service for creating pending sessions and their checkouts."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway | None = None):
        self.db = db
        self._gateway = gateway
        self.pending_session_ttl_seconds = get_settings().pending_session_ttl_seconds

    def gateway_for(self, provider: PaymentProvider) -> PaymentGateway:
        if self._gateway is not None:
            return self._gateway
        return get_payment_gateway(provider)

    async def create_checkout(
        self,
        client: User,
        counselor_id: int,
        date: datetime,
        currency: str,
        notes: str | None = None,
    ) -> tuple[CounselingSession, CheckoutResult]:
        """Create a pending_payment session and a hosted checkout for it.

        The provider is chosen here from the currency and stored on the
        session. If the provider call fails nothing is persisted.

        Args:
            client: Paying user
            counselor_id: Counselor to book
            date: Scheduled start
            currency: 'usd' or 'ngn'
            notes: Optional booking notes

        Returns:
            (session, checkout result)

        Raises:
            UnsupportedCurrencyError: Currency not usd/ngn
            NotFoundError: Counselor does not exist
            ValidationError: Counselor's wallet settles in another currency
            CheckoutCreationFailed: Provider call failed
        """
        currency = currency.lower()
        provider = provider_for_currency(currency)
        session_currency = Currency(currency)

        counselor = await self.db.get(User, counselor_id)
        if counselor is None or counselor.role != UserRole.COUNSELOR or not counselor.is_active:
            raise NotFoundError(f"Counselor {counselor_id} not found")
        if counselor.id == client.id:
            raise ValidationError("Cannot book a session with yourself")

        # The first booking fixes the currency the counselor is paid in
        wallet = await LedgerService(self.db).get_or_create_wallet(
            counselor.id, session_currency  # type: ignore[arg-type]
        )
        if wallet.currency != session_currency:
            raise ValidationError(
                f"Counselor is paid in {wallet.currency.value.upper()}",
                {"wallet_currency": wallet.currency.value, "currency": currency},
            )

        price = counselor.rate_for(currency)
        session = CounselingSession(
            client_id=client.id,  # type: ignore[arg-type]
            counselor_id=counselor.id,  # type: ignore[arg-type]
            date=to_naive_utc(date),
            price=price,
            currency=session_currency,
            provider=provider,
            notes=notes,
        )
        self.db.add(session)
        await self.db.flush()

        try:
            checkout = await self.gateway_for(provider).create_checkout(
                session, price, currency, client.email
            )
        except Exception:
            await self.db.rollback()
            raise

        if provider == PaymentProvider.STRIPE:
            session.stripe_checkout_session_id = checkout.provider_session_id
        else:
            session.payment_reference = checkout.provider_session_id
        self.db.add(session)
        await self.db.commit()

        logger.info(
            f"Session {session.id} created: client={client.id} counselor={counselor.id} "
            f"{price} {currency} via {provider.value}"
        )
        self._schedule_expiry(session.id)  # type: ignore[arg-type]
        return session, checkout

    def _schedule_expiry(self, session_id: int) -> None:
        """Queue cancellation of the session if it is still unpaid after the TTL."""
        from src.tasks.sessions import expire_pending_session

        try:
            expire_pending_session.apply_async(
                args=[session_id], countdown=self.pending_session_ttl_seconds
            )
        except Exception as e:
            logger.warning(f"Failed to schedule expiry for session {session_id}: {e}")
