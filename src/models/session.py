"""Quluub Payments - Counseling session model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from src.models.wallet import Currency
from src.utils.helpers import utc_now


class SessionStatus(str, Enum):
    """Session status.

    State transitions:
    - pending_payment -> paid -> completed
    - pending_payment / paid -> canceled
    completed and canceled are terminal.
    """

    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELED = "canceled"


TERMINAL_SESSION_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELED)


class PaymentProvider(str, Enum):
    """Payment provider chosen once at checkout."""

    STRIPE = "stripe"
    PAYSTACK = "paystack"


class CounselingSession(SQLModel, table=True):
    """A booked (or pending) counseling engagement.

    Attributes:
        id: Auto-increment primary key
        client_id: Paying client
        counselor_id: Counselor receiving the earnings
        date: Scheduled start (UTC)
        duration: Length in minutes
        price: Price in major units of `currency`
        currency: usd or ngn
        status: See SessionStatus
        provider: Gateway selected at checkout

        # Provider references
        stripe_checkout_session_id: Stripe checkout session id (lookup key)
        payment_reference: Paystack transaction reference (lookup key)
        payment_intent_id: Provider's definitive payment id
        amount_paid: Amount reported by the provider, major units

        video_call_url: Room URL, set best-effort after payment
    """

    __tablename__ = "sessions"

    id: int | None = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="users.id", index=True)
    counselor_id: int = Field(foreign_key="users.id", index=True)
    date: datetime = Field(index=True, description="Scheduled start time (UTC)")
    duration: int = Field(default=60, description="Duration in minutes")
    price: Decimal = Field(
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=False),
        description="Price in major units",
    )
    currency: Currency = Field(default=Currency.USD)
    status: SessionStatus = Field(default=SessionStatus.PENDING_PAYMENT, index=True)
    provider: PaymentProvider = Field(default=PaymentProvider.STRIPE)

    stripe_checkout_session_id: str | None = Field(
        default=None, max_length=255, unique=True, index=True
    )
    payment_reference: str | None = Field(default=None, max_length=128, unique=True, index=True)
    payment_intent_id: str | None = Field(default=None, max_length=255)
    amount_paid: Decimal | None = Field(
        default=None,
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=True),
        description="Amount reported paid by the provider",
    )

    video_call_url: str | None = Field(default=None, max_length=512)
    notes: str | None = Field(default=None, max_length=2000)

    paid_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    canceled_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
