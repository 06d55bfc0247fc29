"""Quluub Payments - Client/counselor chat connection request."""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from src.utils.helpers import utc_now


class ConnectionRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ConnectionRequest(SQLModel, table=True):
    """Chat-eligibility request opened for a client once a session is paid."""

    __tablename__ = "connection_requests"

    id: int | None = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="users.id", index=True)
    counselor_id: int = Field(foreign_key="users.id", index=True)
    status: ConnectionRequestStatus = Field(default=ConnectionRequestStatus.PENDING)
    created_at: datetime = Field(default_factory=utc_now)
