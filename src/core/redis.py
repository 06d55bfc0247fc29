"""Redis connection management and per-user pub/sub for Quluub Payments."""

import json
import logging
from typing import Any

import redis.asyncio as redis

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Redis connection pool (initialized in lifespan)
_redis_pool: redis.Redis | None = None


async def init_redis() -> None:
    """Initialize Redis connection pool.

    Call this during application startup (lifespan).
    """
    global _redis_pool
    settings = get_settings()
    _redis_pool = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


def get_redis() -> redis.Redis:
    """Get Redis connection.

    Raises:
        RuntimeError: If Redis is not initialized
    """
    if _redis_pool is None:
        raise RuntimeError("Redis not initialized. Call init_redis() during application startup.")
    return _redis_pool


def user_channel(user_id: int) -> str:
    """Pub/sub channel carrying real-time events for one user."""
    return f"user:{user_id}"


async def publish_user_event(user_id: int, event: str, data: dict[str, Any]) -> int:
    """Publish an event to a user's channel.

    Any server instance holding a socket for the user relays the message.
    Returns the number of subscribers that received it (0 when offline).
    """
    message = json.dumps({"event": event, "data": data}, default=str)
    receivers = await get_redis().publish(user_channel(user_id), message)
    logger.debug(f"Published {event} to user {user_id} ({receivers} subscribers)")
    return receivers
