"""
Per-user notification channel over Redis pub/sub.

PUBLISHING STRATEGY
===================

What we publish:
  - Booking lifecycle events (confirmed, cancelled, rejected, refunded)
  - Attendance events (checked in, checked out)
  - Channel pattern: "notifications:user:{user_id}"

Why pub/sub and not a stored queue:
  - Notifications are a courtesy; the booking, wallet and attendance rows
    are the source of truth and a client can always re-read them
  - A socket gateway subscribes to the user's channel and forwards to
    connected clients; nobody connected means nobody needs it

Failure policy:
  - Fire-and-forget, fail-open. Publishing happens after the unit of work
    commits and never raises: Redis disabled, unreachable or slow only
    costs the notification
"""

import json
from typing import Any, Optional

import redis.asyncio as redis

from seatbook.core.config import get_settings
from seatbook.core.logging import get_logger
from seatbook.core.metrics import redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

CHANNEL_PREFIX = "notifications:user:"


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def user_channel(user_id: int) -> str:
    return f"{CHANNEL_PREFIX}{user_id}"


async def publish_user_event(user_id: int, event: str, payload: dict[str, Any]) -> bool:
    """
    Publish `event` to the user's channel.
    Returns True when Redis accepted the message.
    """
    client = await get_redis()
    if not client:
        return False

    message = json.dumps({"event": event, "data": payload}, default=str)
    try:
        receivers = await client.publish(user_channel(user_id), message)
        logger.debug("notification_published", user_id=user_id, notification=event, receivers=receivers)
        return True
    except Exception as e:
        redis_connection_errors.inc()
        logger.error("notification_publish_error", user_id=user_id, notification=event, error=str(e))
        return False


async def get_redis_stats() -> dict:
    """Redis status for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("clients")
        return {
            "status": "connected",
            "connected_clients": info.get("connected_clients", 0),
            "pubsub_channels": len(await client.pubsub_channels(f"{CHANNEL_PREFIX}*")),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
