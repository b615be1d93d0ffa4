"""Event service — lifecycle publishing and launch deduplication.

Sits between the raw event bus (Redis pub/sub) and the services that
announce what happened:

    generation runner finishes
         → event_service.publish_event("generation.completed", GenerationEvent(...))
         → indexing subscriber embeds the new files

Redis is also used directly for short-lived dedup keys, so the same
generation job is never launched twice.
"""

import logging

import redis.asyncio as redis

from apps.api.config import settings
from events.schemas import BaseEvent, TopicEvent

logger = logging.getLogger(__name__)

# Keep a job's launch key around long enough to cover a slow generation
DEDUP_WINDOW_SECONDS = 600


class EventService:
    """Publishes lifecycle events and guards against duplicate work."""

    def __init__(self):
        self._redis_client: redis.Redis | None = None
        self._event_bus = None  # Injected by the app on startup

    async def _get_redis(self) -> redis.Redis:
        """Lazy Redis connection for deduplication."""
        if self._redis_client is None:
            self._redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        return self._redis_client

    def set_event_bus(self, event_bus):
        """Inject the event bus (called during app startup)."""
        self._event_bus = event_bus

    # ── Deduplication ─────────────────────────────────────

    async def is_duplicate(self, key: str, ttl_seconds: int = DEDUP_WINDOW_SECONDS) -> bool:
        """True when `key` was already claimed within the window.

        Uses Redis SET NX EX: the first caller creates the key and gets
        False; every caller until it expires gets True.
        """
        if not key:
            return False

        redis_client = await self._get_redis()
        was_set = await redis_client.set(f"forge:dedup:{key}", "1", nx=True, ex=ttl_seconds)
        return was_set is None

    async def release(self, key: str) -> None:
        """Drop a dedup key early so the work can be claimed again (e.g. on retry)."""
        redis_client = await self._get_redis()
        await redis_client.delete(f"forge:dedup:{key}")

    # ── Publishing ────────────────────────────────────────

    async def publish(self, topic: str, payload: dict) -> None:
        """Publish a free-form payload; no-op when no bus is configured."""
        if not self._event_bus:
            return
        event = TopicEvent(source="api", event_type=topic, payload=payload)
        await self._event_bus.publish(topic, event)
        logger.debug("Published event to '%s'", topic)

    async def publish_event(self, topic: str, event: BaseEvent) -> None:
        """Publish a typed event; failures are logged, never raised to the caller."""
        if not self._event_bus:
            return
        try:
            await self._event_bus.publish(topic, event)
            logger.debug("Published %s to '%s'", type(event).__name__, topic)
        except Exception as e:
            logger.error("Failed to publish event to '%s': %s", topic, e)

    # ── Cleanup ───────────────────────────────────────────

    async def close(self):
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.close()
            self._redis_client = None


# Singleton
event_service = EventService()
