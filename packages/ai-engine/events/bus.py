"""Event bus: publish/subscribe for lifecycle events.

    runner:   await event_bus.publish("generation.completed", GenerationEvent(...))
                                    ↓
                               Redis Pub/Sub
                                    ↓
    indexer:  await event_bus.subscribe("generation.completed", handle_completed)

Callers depend on BaseEventBus; tests substitute a mock.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Callable, Awaitable

import redis.asyncio as redis

from .schemas import BaseEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], Awaitable[None]]


class BaseEventBus(ABC):

    @abstractmethod
    async def publish(self, topic: str, event: BaseEvent) -> None:
        ...

    @abstractmethod
    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Call `handler(event_dict)` for every event published on `topic`."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class RedisEventBus(BaseEventBus):
    """Redis Pub/Sub transport.

    Delivery is at-most-once: a subscriber that is down misses events.
    Everything published here is also recoverable from the database, so
    that is acceptable.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client: redis.Redis | None = None
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pubsub = None
        self._listener: asyncio.Task | None = None

    async def _ensure_connected(self):
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
            logger.info("Connected to Redis at %s", self._redis_url)

    async def publish(self, topic: str, event: BaseEvent) -> None:
        await self._ensure_connected()
        await self._client.publish(topic, json.dumps(event.to_dict()))
        logger.debug("Published %s to topic '%s'", event.type_name, topic)

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Register a handler. One pubsub connection serves every topic."""
        await self._ensure_connected()

        if self._pubsub is None:
            self._pubsub = self._client.pubsub()

        if topic not in self._handlers:
            await self._pubsub.subscribe(topic)
            logger.info("Subscribed to topic '%s'", topic)
        self._handlers.setdefault(topic, []).append(handler)

        if self._listener is None:
            self._listener = asyncio.create_task(self._listen_loop())

    async def _listen_loop(self):
        try:
            async for message in self._pubsub.listen():
                if message["type"] != "message":
                    continue
                topic = message["channel"]
                try:
                    event_dict = json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.error("Invalid JSON on topic '%s': %s", topic, message["data"])
                    continue
                for handler in self._handlers.get(topic, []):
                    try:
                        await handler(event_dict)
                    except Exception as e:
                        logger.error("Handler error for topic '%s': %s", topic, e, exc_info=True)
        except asyncio.CancelledError:
            logger.info("Event bus listener cancelled")
        except Exception as e:
            logger.error("Event bus listen loop stopped: %s", e)

    async def close(self) -> None:
        if self._listener:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
        if self._pubsub:
            await self._pubsub.close()
        if self._client:
            await self._client.close()
        logger.info("Redis event bus closed")


# ── Factory ───────────────────────────────────────────

def create_event_bus(backend: str = "redis", **kwargs) -> BaseEventBus:
    """Create an event bus for the configured backend.

        event_bus = create_event_bus("redis", redis_url="redis://localhost:6379/0")
    """
    if backend == "redis":
        redis_url = kwargs.get("redis_url")
        if not redis_url:
            raise ValueError("redis_url required for Redis event bus")
        return RedisEventBus(redis_url)

    raise ValueError(f"Unknown event bus backend: {backend}")
