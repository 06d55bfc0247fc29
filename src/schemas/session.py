"""Session and checkout schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.models.session import PaymentProvider, SessionStatus
from src.models.wallet import Currency
from src.schemas.wallet import MoneyStr


class CheckoutRequest(BaseModel):
    """Book a session and start payment."""

    counselor_id: int = Field(..., description="Counselor to book")
    date: datetime = Field(..., description="Scheduled start (UTC)")
    currency: str = Field(default="usd", description="usd (Stripe) or ngn (Paystack)")
    notes: str | None = Field(default=None, max_length=2000)


class CheckoutResponse(BaseModel):
    """Hosted checkout to redirect the client to."""

    session_id: int
    provider: PaymentProvider
    redirect_url: str
    provider_session_id: str


class RescheduleRequest(BaseModel):
    date: datetime = Field(..., description="New scheduled start (UTC)")


class SessionResponse(BaseModel):
    """Session details."""

    id: int
    client_id: int
    counselor_id: int
    date: datetime
    duration: int
    price: MoneyStr
    currency: Currency
    status: SessionStatus
    provider: PaymentProvider
    payment_reference: str | None = None
    video_call_url: str | None = None
    notes: str | None = None
    paid_at: datetime | None = None
    completed_at: datetime | None = None
    canceled_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class VerifyPaymentRequest(BaseModel):
    """Confirm payment after returning from checkout."""

    session_id: int


class VerifyPaymentResponse(BaseModel):
    session_id: int
    status: SessionStatus
    outcome: str = Field(..., description="applied, duplicate, already_processed or not_paid")
