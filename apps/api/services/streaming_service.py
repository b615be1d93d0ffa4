"""Streaming service — fans generation progress out to SSE connections.

Connections live in this process only. Every event that matters for the
progress timeline is also written to `generation_events`, which is the
source of truth when a client reconnects or another worker serves it.

    cleanup = streaming_service.add_connection(project_id, queue.put_nowait)
    await streaming_service.emit(project_id, StepStart(step="Planning", message="..."))
    cleanup()
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from apps.api.config import settings
from apps.api.database import get_db
from apps.api.models.generation_event import EventIcon
from apps.api.repositories import generation_event_repo
from events.stream import StreamEvent

logger = logging.getLogger(__name__)

ConnectionCallback = Callable[[str], None]

CLOSE_FRAME = "event: close\ndata: {}\n\n"

# event type → (icon, message builder)
PERSISTED_EVENTS: dict[str, tuple[EventIcon, Callable[[dict], str]]] = {
    "project:created": (EventIcon.IN_PROGRESS, lambda e: "Project created"),
    "step:start": (EventIcon.IN_PROGRESS, lambda e: e.get("message") or e.get("step", "")),
    "step:complete": (EventIcon.COMPLETE, lambda e: f"✓ {e.get('message') or e.get('step', '')}"),
    "file:complete": (EventIcon.COMPLETE, lambda e: f"✓ Created {e.get('filename', '')}"),
    "validation:start": (EventIcon.IN_PROGRESS, lambda e: e.get("stage") or "Validating..."),
    "validation:complete": (
        EventIcon.COMPLETE,
        lambda e: f"✓ {e.get('summary') or e.get('stage') or 'Code validated successfully'}",
    ),
    "complete": (EventIcon.COMPLETE, lambda e: f"✓ {e.get('summary', '')}"),
    "error": (EventIcon.ERROR, lambda e: f"✗ {e.get('message', '')}"),
}

# Persisted once per (project, type, message)
DEDUPLICATED_EVENTS = {"step:complete", "file:complete"}


@dataclass
class _Connection:
    callback: ConnectionCallback
    created_at: float = field(default_factory=time.monotonic)


def format_sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


def _as_uuid(value) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class StreamingService:
    """In-process registry of SSE connections, keyed by project id."""

    def __init__(self, stale_after_seconds: int = settings.stream_stale_after_seconds):
        self.stale_after_seconds = stale_after_seconds
        self._connections: dict[str, list[_Connection]] = {}
        self._cleanup_task: asyncio.Task | None = None

    # ── Connections ───────────────────────────────────────

    def add_connection(self, project_id: str, callback: ConnectionCallback) -> Callable[[], None]:
        """Register a connection. Returns a function that removes it again."""
        project_id = str(project_id)
        self._connections.setdefault(project_id, []).append(_Connection(callback))
        logger.info(
            "Added stream connection for project %s (%d total)",
            project_id, len(self._connections[project_id]),
        )

        def cleanup() -> None:
            self.remove_connection(project_id, callback)

        return cleanup

    def remove_connection(self, project_id: str, callback: ConnectionCallback) -> None:
        project_id = str(project_id)
        remaining = [c for c in self._connections.get(project_id, []) if c.callback is not callback]
        if remaining:
            self._connections[project_id] = remaining
        else:
            self._connections.pop(project_id, None)
        logger.info("Removed stream connection for project %s (%d remaining)", project_id, len(remaining))

    def close_project(self, project_id: str) -> None:
        """Send a close frame to every connection of a project and forget them."""
        connections = self._connections.pop(str(project_id), [])
        if not connections:
            return
        logger.info("Closing %d stream connection(s) for project %s", len(connections), project_id)
        for connection in connections:
            try:
                connection.callback(CLOSE_FRAME)
            except Exception as e:
                logger.warning("Error closing stream connection for project %s: %s", project_id, e)

    def get_connection_count(self, project_id: str) -> int:
        return len(self._connections.get(str(project_id), []))

    def get_total_connections(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    # ── Emitting ──────────────────────────────────────────

    async def emit(self, project_id: str, event: StreamEvent | dict) -> None:
        """Timestamp an event, deliver it to every connection, then persist it."""
        project_id = str(project_id)
        data = event.to_dict() if isinstance(event, StreamEvent) else dict(event)
        data["timestamp"] = int(time.time() * 1000)

        connections = self._connections.get(project_id, [])
        if connections:
            frame = format_sse(data)
            logger.debug("Emitting %s to %d connection(s) for project %s", data.get("type"), len(connections), project_id)
            for connection in list(connections):
                try:
                    connection.callback(frame)
                except Exception as e:
                    logger.warning("Error sending %s to a connection of project %s: %s", data.get("type"), project_id, e)
        else:
            logger.debug("No connections for project %s, persisting %s only", project_id, data.get("type"))

        await self._persist(project_id, data)

    async def _persist(self, project_id: str, data: dict) -> None:
        """Write the event to generation_events. Never raises."""
        config = PERSISTED_EVENTS.get(data.get("type", ""))
        if config is None:
            return
        icon, build_message = config
        message = build_message(data)

        project_uuid = _as_uuid(project_id)
        if project_uuid is None:
            logger.warning("Not persisting %s: invalid project id %r", data.get("type"), project_id)
            return

        try:
            async for db in get_db():
                if data["type"] in DEDUPLICATED_EVENTS and await generation_event_repo.exists(
                    db, project_uuid, data["type"], message
                ):
                    logger.debug("Event already stored, skipping: %s for project %s", data["type"], project_id)
                    return

                await generation_event_repo.create(
                    db,
                    project_id=project_uuid,
                    version_id=_as_uuid(data.get("versionId")),
                    event_type=data["type"],
                    filename=data.get("filename"),
                    message=message,
                    icon=icon,
                    timestamp=datetime.fromtimestamp(data["timestamp"] / 1000, tz=timezone.utc),
                    event_metadata=data,
                )
                break
        except Exception as e:
            logger.error("Failed to persist %s event for project %s: %s", data.get("type"), project_id, e)

    # ── Housekeeping ──────────────────────────────────────

    def cleanup_stale_connections(self) -> int:
        """Drop connections older than the stale window. Returns how many were dropped."""
        cutoff = time.monotonic() - self.stale_after_seconds
        cleaned = 0
        for project_id in list(self._connections):
            connections = self._connections[project_id]
            active = [c for c in connections if c.created_at > cutoff]
            cleaned += len(connections) - len(active)
            if active:
                self._connections[project_id] = active
            else:
                del self._connections[project_id]
        if cleaned:
            logger.info("Cleaned up %d stale stream connection(s)", cleaned)
        return cleaned

    async def _cleanup_loop(self, interval_seconds: int) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.cleanup_stale_connections()

    def start_cleanup(self, interval_seconds: int = settings.stream_cleanup_interval_seconds) -> None:
        """Start the periodic stale-connection sweep (called during app startup)."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval_seconds))

    async def stop_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None


# Singleton
streaming_service = StreamingService()
