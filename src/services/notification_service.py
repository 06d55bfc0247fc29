"""Notification Service - real-time events and web push.

Real-time events go to the `user:<id>` Redis channel; whichever server
instance holds the user's socket relays them. Both channels are best-effort:
failures are logged and reported as False, never raised.
"""

import asyncio
import json
import logging
from typing import Any

from pywebpush import WebPushException, webpush
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.core.redis import publish_user_event
from src.models.user import User

logger = logging.getLogger(__name__)

SESSION_BOOKED = "session-booked"
WALLET_UPDATED = "wallet-updated"


class NotificationService:
    """Service for user-facing notifications."""

    def __init__(self, db: AsyncSession | None = None) -> None:
        self.db = db
        settings = get_settings()
        self.vapid_private_key = settings.vapid_private_key
        self.vapid_claims_email = settings.vapid_claims_email

    async def publish(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        """Publish a real-time event to a user.

        Returns:
            True if at least one connected instance received it
        """
        try:
            receivers = await publish_user_event(user_id, event, data)
        except Exception as e:
            logger.warning(f"Failed to publish {event} to user {user_id}: {e}")
            return False
        return receivers > 0

    async def send_push(self, user: User, title: str, body: str, url: str = "/") -> bool:
        """Send a web push to the user's stored subscription.

        Expired subscriptions (404/410) are cleared.
        """
        if not user.push_subscription or not self.vapid_private_key:
            return False

        payload = json.dumps({"title": title, "body": body, "url": url})
        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=user.push_subscription,
                data=payload,
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_claims_email},
            )
            return True
        except WebPushException as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            if status_code in (404, 410) and self.db is not None:
                logger.info(f"Push subscription expired for user {user.id}, clearing")
                await self.db.execute(
                    update(User).where(User.id == user.id).values(push_subscription=None)
                )
                await self.db.commit()
            else:
                logger.warning(f"Web push to user {user.id} failed: {e}")
            return False
