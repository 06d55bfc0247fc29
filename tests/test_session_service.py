from datetime import UTC, datetime
from decimal import Decimal

import pytest

from conftest import add_session, wallet_of
from src.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError
from src.models.session import SessionStatus
from src.models.user import UserRole
from src.models.wallet import Currency
from src.services.ledger_service import LedgerService
from src.services.session_service import SessionService


@pytest.mark.asyncio
async def test_complete_has_no_financial_effect(db, client_user, counselor):
    session = await add_session(db, client_user, counselor, status=SessionStatus.PAID)
    await LedgerService(db).credit(
        counselor.id, Decimal("90"), Currency.USD, "Earnings", f"session:{session.id}"
    )
    await db.commit()

    updated = await SessionService(db).complete_session(session.id, counselor)

    assert updated.status == SessionStatus.COMPLETED
    assert updated.completed_at is not None
    wallet = await wallet_of(db, counselor.id)
    assert wallet.balance == Decimal("90")


@pytest.mark.asyncio
async def test_complete_requires_paid(db, client_user, counselor):
    session = await add_session(db, client_user, counselor)

    with pytest.raises(InvalidStateError) as exc_info:
        await SessionService(db).complete_session(session.id, counselor)
    assert exc_info.value.details["status"] == SessionStatus.PENDING_PAYMENT.value


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [SessionStatus.COMPLETED, SessionStatus.CANCELED])
async def test_terminal_sessions_are_immutable(db, client_user, counselor, terminal):
    session = await add_session(db, client_user, counselor, status=terminal)
    service = SessionService(db)

    with pytest.raises(InvalidStateError):
        await service.cancel_session(session.id, client_user)
    with pytest.raises(InvalidStateError):
        await service.complete_session(session.id, counselor)
    with pytest.raises(InvalidStateError):
        await service.reschedule_session(session.id, client_user, datetime(2027, 1, 5, 9, 0))

    await db.refresh(session)
    assert session.status == terminal


@pytest.mark.asyncio
async def test_cancel_paid_session(db, client_user, counselor):
    session = await add_session(db, client_user, counselor, status=SessionStatus.PAID)

    updated = await SessionService(db).cancel_session(session.id, client_user)

    assert updated.status == SessionStatus.CANCELED
    assert updated.canceled_at is not None


@pytest.mark.asyncio
async def test_reschedule_keeps_status_and_normalizes_to_utc(db, client_user, counselor):
    session = await add_session(db, client_user, counselor, status=SessionStatus.PAID)
    aware = datetime(2027, 1, 5, 9, 0, tzinfo=UTC)

    updated = await SessionService(db).reschedule_session(session.id, client_user, aware)

    assert updated.status == SessionStatus.PAID
    assert updated.date == datetime(2027, 1, 5, 9, 0)


@pytest.mark.asyncio
async def test_non_party_cannot_read_session(db, client_user, counselor, other_user):
    session = await add_session(db, client_user, counselor)

    with pytest.raises(AuthorizationError):
        await SessionService(db).get_session_for(session.id, other_user)


@pytest.mark.asyncio
async def test_admin_can_read_any_session(db, client_user, counselor, other_user):
    session = await add_session(db, client_user, counselor)
    other_user.role = UserRole.ADMIN

    found = await SessionService(db).get_session_for(session.id, other_user)
    assert found.id == session.id


@pytest.mark.asyncio
async def test_missing_session(db, client_user):
    with pytest.raises(NotFoundError):
        await SessionService(db).get_session_for(9999, client_user)


@pytest.mark.asyncio
async def test_expire_pending_session(db, client_user, counselor):
    pending = await add_session(db, client_user, counselor)
    paid = await add_session(db, client_user, counselor, status=SessionStatus.PAID)
    service = SessionService(db)

    assert await service.expire_pending_session(pending.id) is True
    assert await service.expire_pending_session(paid.id) is False

    await db.refresh(pending)
    await db.refresh(paid)
    assert pending.status == SessionStatus.CANCELED
    assert paid.status == SessionStatus.PAID
