"""Session Service - user-driven session transitions.

complete, cancel and reschedule are compare-and-swap updates on the
status column. Completion is a pure status change: earnings are credited
once, when the session is paid.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi_pagination.ext.sqlmodel import apaginate
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError
from src.models.session import CounselingSession, SessionStatus
from src.models.user import User, UserRole
from src.schemas.pagination import CustomPage
from src.schemas.session import SessionResponse
from src.utils.helpers import to_naive_utc, utc_now

logger = logging.getLogger(__name__)

OPEN_STATUSES = (SessionStatus.PENDING_PAYMENT, SessionStatus.PAID)


class SessionService:
    """Service for reading and transitioning counseling sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _reload(self, session_id: int) -> CounselingSession:
        result = await self.db.execute(
            select(CounselingSession)
            .where(CounselingSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def get_session_for(self, session_id: int, user: User) -> CounselingSession:
        """Get a session the user is a party to (admins see all).

        Raises:
            NotFoundError: Unknown session
            AuthorizationError: User is neither client nor counselor
        """
        session = await self.db.get(CounselingSession, session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if user.role != UserRole.ADMIN and user.id not in (
            session.client_id,
            session.counselor_id,
        ):
            raise AuthorizationError("Not a party to this session")
        return session

    async def list_sessions(self, user: User) -> CustomPage[SessionResponse]:
        """Paginated sessions where the user is client or counselor, latest first."""
        query = (
            select(CounselingSession)
            .where(
                or_(
                    CounselingSession.client_id == user.id,
                    CounselingSession.counselor_id == user.id,
                )
            )
            .order_by(CounselingSession.date.desc())  # type: ignore[attr-defined]
        )
        return await apaginate(
            self.db,
            query,
            transformer=lambda items: [SessionResponse.model_validate(s) for s in items],
        )

    async def _transition(
        self,
        session: CounselingSession,
        allowed: tuple[SessionStatus, ...],
        action: str,
        values: dict[str, Any],
    ) -> CounselingSession:
        """Apply `values` only if the session is still in one of `allowed`.

        Raises:
            InvalidStateError: Status changed or was never allowed
        """
        result = await self.db.execute(
            update(CounselingSession)
            .where(
                CounselingSession.id == session.id,
                CounselingSession.status.in_(allowed),  # type: ignore[attr-defined]
            )
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self._reload(session.id)  # type: ignore[arg-type]
            raise InvalidStateError("session", current.status.value, action)

        await self.db.commit()
        return await self._reload(session.id)  # type: ignore[arg-type]

    async def complete_session(self, session_id: int, user: User) -> CounselingSession:
        """Mark a paid session completed. No wallet effect.

        Raises:
            InvalidStateError: Session is not exactly `paid`
        """
        session = await self.get_session_for(session_id, user)
        updated = await self._transition(
            session,
            (SessionStatus.PAID,),
            "complete",
            {"status": SessionStatus.COMPLETED, "completed_at": utc_now()},
        )
        logger.info(f"Session {session_id} completed by user {user.id}")
        return updated

    async def cancel_session(self, session_id: int, user: User) -> CounselingSession:
        """Cancel a pending or paid session. Refunds for paid sessions are manual.

        Raises:
            InvalidStateError: Session already completed or canceled
        """
        session = await self.get_session_for(session_id, user)
        was_paid = session.status == SessionStatus.PAID
        updated = await self._transition(
            session,
            OPEN_STATUSES,
            "cancel",
            {"status": SessionStatus.CANCELED, "canceled_at": utc_now()},
        )
        if was_paid:
            logger.warning(
                f"Paid session {session_id} canceled by user {user.id}; refund requires review"
            )
        else:
            logger.info(f"Session {session_id} canceled by user {user.id}")
        return updated

    async def reschedule_session(
        self, session_id: int, user: User, new_date: datetime
    ) -> CounselingSession:
        """Move a pending or paid session to a new date. Status is unchanged.

        Raises:
            InvalidStateError: Session already completed or canceled
        """
        session = await self.get_session_for(session_id, user)
        new_date = to_naive_utc(new_date)
        updated = await self._transition(session, OPEN_STATUSES, "reschedule", {"date": new_date})
        logger.info(f"Session {session_id} rescheduled to {new_date.isoformat()}")
        return updated

    async def expire_pending_session(self, session_id: int) -> bool:
        """Cancel a session still awaiting payment. Used by the expiry task.

        Returns:
            True if the session was canceled, False if it had moved on
        """
        now = utc_now()
        result = await self.db.execute(
            update(CounselingSession)
            .where(
                CounselingSession.id == session_id,
                CounselingSession.status == SessionStatus.PENDING_PAYMENT,
            )
            .values(status=SessionStatus.CANCELED, canceled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0
