"""Shared fixtures: in-memory SQLite database, users and provider fakes."""

import base64
import json
import os
from datetime import datetime, timedelta
from decimal import Decimal

# Settings are read at import time by src.db.engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AES_ENCRYPTION_KEY", base64.b64encode(b"0123456789abcdef" * 2).decode())
os.environ.setdefault("CLERK_SECRET_KEY", "sk_test_clerk")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_paystack")
os.environ.setdefault("CLIENT_URL", "https://app.quluub.test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel, select  # noqa: E402

import src.models  # noqa: E402, F401
from src.core.exceptions import VideoRoomError  # noqa: E402
from src.gateways.base import (  # noqa: E402
    CheckoutResult,
    PaymentEvent,
    PaymentGateway,
    ResolvedAccount,
    TransferResult,
)
from src.models.session import CounselingSession, PaymentProvider, SessionStatus  # noqa: E402
from src.models.user import User, UserRole  # noqa: E402
from src.models.wallet import Currency, Wallet  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============ Users ============


async def _add_user(db, **fields) -> User:
    user = User(**fields)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def client_user(db) -> User:
    return await _add_user(
        db, clerk_id="user_client", email="client@example.com", role=UserRole.CLIENT
    )


@pytest_asyncio.fixture
async def counselor(db) -> User:
    return await _add_user(
        db,
        clerk_id="user_counselor",
        email="counselor@example.com",
        name="Amina Bello",
        role=UserRole.COUNSELOR,
        session_rate=Decimal("100"),
        ngn_session_rate=Decimal("25000"),
    )


@pytest_asyncio.fixture
async def other_user(db) -> User:
    return await _add_user(
        db, clerk_id="user_other", email="other@example.com", role=UserRole.CLIENT
    )


# ============ Records ============


async def add_session(
    db,
    client: User,
    counselor: User,
    *,
    currency: Currency = Currency.USD,
    price: Decimal = Decimal("100"),
    status: SessionStatus = SessionStatus.PENDING_PAYMENT,
    **fields,
) -> CounselingSession:
    provider = PaymentProvider.STRIPE if currency == Currency.USD else PaymentProvider.PAYSTACK
    session = CounselingSession(
        client_id=client.id,
        counselor_id=counselor.id,
        date=datetime(2026, 11, 2, 10, 0) + timedelta(days=1),
        price=price,
        currency=currency,
        provider=provider,
        status=status,
        **fields,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return session


async def wallet_of(db, user_id: int) -> Wallet | None:
    """Fresh wallet row; takes an id since rollbacks expire loaded users."""
    result = await db.execute(
        select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ============ Provider fakes ============


class FakeGateway(PaymentGateway):
    """In-memory gateway recording every call."""

    def __init__(self, provider: PaymentProvider = PaymentProvider.PAYSTACK) -> None:
        self._provider = provider
        self.calls: list[tuple] = []
        self.resolved_name = "AMINA BELLO"
        self.checkout_error: Exception | None = None
        self.transfer_error: Exception | None = None
        self.transfer_status = "pending"
        self.paid_event: PaymentEvent | None = None
        self.retrieve_error: Exception | None = None

    @property
    def provider(self) -> PaymentProvider:
        return self._provider

    async def create_checkout(self, session, amount, currency, customer_email):
        self.calls.append(("create_checkout", session.id, amount, currency, customer_email))
        if self.checkout_error:
            raise self.checkout_error
        if self._provider == PaymentProvider.STRIPE:
            ref = f"cs_test_{session.id}"
        else:
            ref = f"qs_{session.id}"
        return CheckoutResult(
            provider=self._provider,
            redirect_url=f"https://pay.example/{ref}",
            provider_session_id=ref,
        )

    async def retrieve_payment(self, session):
        self.calls.append(("retrieve_payment", session.id))
        if self.retrieve_error:
            raise self.retrieve_error
        return self.paid_event

    def verify_webhook(self, raw_body, signature):
        return json.loads(raw_body)

    def parse_event(self, event):
        return None

    async def resolve_bank_account(self, account_number, bank_code):
        self.calls.append(("resolve_bank_account", account_number, bank_code))
        return ResolvedAccount(account_name=self.resolved_name, account_number=account_number)

    async def create_transfer_recipient(self, name, account_number, bank_code):
        self.calls.append(("create_transfer_recipient", name, account_number, bank_code))
        return "RCP_test123"

    async def initiate_transfer(self, amount, recipient_code, reference, reason):
        self.calls.append(("initiate_transfer", amount, recipient_code, reference))
        if self.transfer_error:
            raise self.transfer_error
        return TransferResult(transfer_code=f"TRF_{reference}", status=self.transfer_status)


class FakeVideoService:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.rooms: list[int] = []

    async def create_room(self, session) -> str:
        if self.fail:
            raise VideoRoomError("Video room rejected: HTTP 503")
        self.rooms.append(session.id)
        return f"https://quluub.whereby.com/session-{session.id}"


class FakeNotifications:
    def __init__(self) -> None:
        self.published: list[tuple[int, str, dict]] = []
        self.pushes: list[tuple[int, str]] = []

    async def publish(self, user_id, event, data) -> bool:
        self.published.append((user_id, event, data))
        return True

    async def send_push(self, user, title, body, url="/") -> bool:
        self.pushes.append((user.id, title))
        return True


@pytest.fixture
def paystack_gateway() -> FakeGateway:
    return FakeGateway(PaymentProvider.PAYSTACK)


@pytest.fixture
def stripe_gateway() -> FakeGateway:
    return FakeGateway(PaymentProvider.STRIPE)


@pytest.fixture
def video() -> FakeVideoService:
    return FakeVideoService()


@pytest.fixture
def notifications() -> FakeNotifications:
    return FakeNotifications()
