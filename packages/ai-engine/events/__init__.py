"""Lifecycle events, the bus that carries them, and SSE progress events."""

from .schemas import (
    EventType,
    BaseEvent,
    TopicEvent,
    GenerationEvent,
    SandboxEvent,
    DeployEvent,
    GitHubSyncEvent,
)
from .stream import (
    StreamEventType,
    GenerationStatus,
    StreamEvent,
    ProjectCreated,
    StepStart,
    StepComplete,
    FileGenerating,
    CodeChunk,
    FileComplete,
    ValidationStart,
    ValidationComplete,
    GenerationComplete,
    GenerationError,
)
from .bus import BaseEventBus, RedisEventBus, create_event_bus

__all__ = [
    "EventType",
    "BaseEvent",
    "TopicEvent",
    "GenerationEvent",
    "SandboxEvent",
    "DeployEvent",
    "GitHubSyncEvent",
    "StreamEventType",
    "GenerationStatus",
    "StreamEvent",
    "ProjectCreated",
    "StepStart",
    "StepComplete",
    "FileGenerating",
    "CodeChunk",
    "FileComplete",
    "ValidationStart",
    "ValidationComplete",
    "GenerationComplete",
    "GenerationError",
    "BaseEventBus",
    "RedisEventBus",
    "create_event_bus",
]
