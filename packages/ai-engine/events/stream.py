"""Progress events streamed to the browser while a generation runs.

Each event serialises to the camelCase JSON the preview UI expects, e.g.

    {"type": "file:complete", "filename": "app/page.tsx", "content": "...", "path": "app/page.tsx"}
"""

from dataclasses import dataclass, field, fields
from enum import Enum


class StreamEventType(str, Enum):
    PROJECT_CREATED = "project:created"
    STEP_START = "step:start"
    STEP_COMPLETE = "step:complete"
    FILE_GENERATING = "file:generating"
    CODE_CHUNK = "code:chunk"
    FILE_COMPLETE = "file:complete"
    VALIDATION_START = "validation:start"
    VALIDATION_COMPLETE = "validation:complete"
    COMPLETE = "complete"
    ERROR = "error"


class GenerationStatus(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    GENERATING = "generating"
    VALIDATING = "validating"
    COMPLETE = "complete"
    ERROR = "error"


# snake_case attribute → wire name
_WIRE_NAMES = {
    "project_id": "projectId",
    "total_files": "totalFiles",
    "version_id": "versionId",
}


@dataclass
class StreamEvent:
    """Base for streamed events. `version_id` is optional on every event."""
    type: StreamEventType = field(init=False)
    version_id: str | None = field(default=None, kw_only=True)

    def to_dict(self) -> dict:
        data = {"type": self.type.value}
        for f in fields(self):
            if f.name == "type":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            data[_WIRE_NAMES.get(f.name, f.name)] = value
        return data


@dataclass
class ProjectCreated(StreamEvent):
    project_id: str
    prompt: str

    def __post_init__(self):
        self.type = StreamEventType.PROJECT_CREATED


@dataclass
class StepStart(StreamEvent):
    step: str
    message: str

    def __post_init__(self):
        self.type = StreamEventType.STEP_START


@dataclass
class StepComplete(StreamEvent):
    step: str
    message: str

    def __post_init__(self):
        self.type = StreamEventType.STEP_COMPLETE


@dataclass
class FileGenerating(StreamEvent):
    filename: str
    path: str

    def __post_init__(self):
        self.type = StreamEventType.FILE_GENERATING


@dataclass
class CodeChunk(StreamEvent):
    filename: str
    chunk: str
    progress: int               # 0-100

    def __post_init__(self):
        self.type = StreamEventType.CODE_CHUNK
        self.progress = max(0, min(100, self.progress))


@dataclass
class FileComplete(StreamEvent):
    filename: str
    content: str
    path: str

    def __post_init__(self):
        self.type = StreamEventType.FILE_COMPLETE


@dataclass
class ValidationStart(StreamEvent):
    stage: str

    def __post_init__(self):
        self.type = StreamEventType.VALIDATION_START


@dataclass
class ValidationComplete(StreamEvent):
    stage: str
    result: dict | None = None
    message: str | None = None
    summary: str | None = None

    def __post_init__(self):
        self.type = StreamEventType.VALIDATION_COMPLETE


@dataclass
class GenerationComplete(StreamEvent):
    summary: str
    total_files: int

    def __post_init__(self):
        self.type = StreamEventType.COMPLETE


@dataclass
class GenerationError(StreamEvent):
    message: str
    stage: str | None = None

    def __post_init__(self):
        self.type = StreamEventType.ERROR
