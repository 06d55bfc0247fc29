"""Quluub Payments - User model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from src.utils.helpers import utc_now

DEFAULT_USD_RATE = Decimal("50")
DEFAULT_NGN_RATE = Decimal("25000")


class UserRole(str, Enum):
    """User roles for access control."""

    CLIENT = "client"
    COUNSELOR = "counselor"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """User model - synced from Clerk.

    Attributes:
        id: Auto-increment primary key
        clerk_id: Unique Clerk user ID (indexed)
        email: User email address (indexed)
        name: Display name
        role: client, counselor or admin
        session_rate: Counselor's price per session in USD
        ngn_session_rate: Counselor's price per session in NGN
        push_subscription: Browser web-push subscription (endpoint + keys)
        is_active: Account status
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    clerk_id: str = Field(max_length=255, unique=True, index=True)
    email: str = Field(max_length=255, index=True)
    name: str | None = Field(default=None, max_length=255)
    role: UserRole = Field(default=UserRole.CLIENT)
    is_active: bool = Field(default=True)

    # Counselor pricing
    session_rate: Decimal = Field(
        default=DEFAULT_USD_RATE,
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=False, default=DEFAULT_USD_RATE),
    )
    ngn_session_rate: Decimal = Field(
        default=DEFAULT_NGN_RATE,
        sa_column=sa.Column(sa.DECIMAL(18, 2), nullable=False, default=DEFAULT_NGN_RATE),
    )

    push_subscription: dict[str, Any] | None = Field(
        default=None,
        sa_column=sa.Column(sa.JSON, nullable=True),
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_counselor(self) -> bool:
        return self.role == UserRole.COUNSELOR

    def rate_for(self, currency: str) -> Decimal:
        """Session price in the given currency ('usd' or 'ngn')."""
        if currency == "ngn":
            return self.ngn_session_rate or DEFAULT_NGN_RATE
        return self.session_rate or DEFAULT_USD_RATE
