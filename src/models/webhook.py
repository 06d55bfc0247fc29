"""Quluub Payments - Processed webhook events (idempotency keys)."""

from datetime import datetime

from sqlmodel import Field, SQLModel, UniqueConstraint

from src.models.session import PaymentProvider
from src.utils.helpers import utc_now


class ProcessedEvent(SQLModel, table=True):
    """Marker row written in the same transaction as an event's effects.

    A unique-constraint conflict on (provider, event_key) means the event
    has already been applied.

    Attributes:
        provider: stripe or paystack
        event_key: Provider event id, or a key derived from the payload
        event_type: e.g. checkout.session.completed, charge.success
    """

    __tablename__ = "processed_events"
    __table_args__ = (UniqueConstraint("provider", "event_key", name="uq_processed_event"),)

    id: int | None = Field(default=None, primary_key=True)
    provider: PaymentProvider
    event_key: str = Field(max_length=255)
    event_type: str = Field(max_length=64)
    created_at: datetime = Field(default_factory=utc_now)
