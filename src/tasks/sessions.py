"""Session lifecycle tasks.

- Cancel sessions whose checkout was abandoned
"""

import asyncio
import logging

from src.db.engine import close_db, get_session
from src.services.session_service import SessionService
from src.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async coroutine in sync context for Celery."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(name="sessions.expire_pending_session")
def expire_pending_session(session_id: int) -> dict:
    """Cancel a session still awaiting payment after its checkout TTL.

    Scheduled at checkout with a countdown. A session paid in the meantime
    is left untouched.
    """
    return run_async(_expire_pending_session_async(session_id))


async def _expire_pending_session_async(session_id: int) -> dict:
    try:
        async with get_session() as db:
            canceled = await SessionService(db).expire_pending_session(session_id)
    finally:
        await close_db()

    if canceled:
        logger.info(f"[expire_pending_session] session {session_id} canceled, checkout abandoned")
    else:
        logger.info(f"[expire_pending_session] session {session_id} no longer pending")
    return {"session_id": session_id, "canceled": canceled}
