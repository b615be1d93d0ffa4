"""Sandbox schemas for request validation and response serialization."""

from pydantic import BaseModel, Field


# ── Request Schemas ────────────────────────────────────

class SandboxCreate(BaseModel):
    """Create a sandbox, optionally seeded with files."""
    framework: str | None = None
    files: dict[str, str] = Field(default_factory=dict)


class FileWriteRequest(BaseModel):
    content: str


class ExecCommandRequest(BaseModel):
    command: str
    timeout: int = Field(default=30, ge=1, le=600)


class TerminalInitRequest(BaseModel):
    working_directory: str = "."


class TerminalExecuteRequest(BaseModel):
    command: str = Field(min_length=1)
    session_id: str | None = None
    timeout: int = Field(default=300, ge=1, le=600)


class TerminalCleanupRequest(BaseModel):
    session_id: str


# ── Response Schemas ───────────────────────────────────

class FileEntry(BaseModel):
    name: str
    path: str
    is_directory: bool
    size: int | None = None


class FileContent(BaseModel):
    path: str
    content: str
    size: int
    lines: int


class LifecycleResponse(BaseModel):
    """Result of a pause / resume / keepalive / restart call.

    Failures that the client can recover from by restarting are reported
    with success=False and needsRestart=True rather than an HTTP error.
    """
    success: bool
    message: str | None = None
    error: str | None = None
    sandboxId: str | None = None
    sandboxUrl: str | None = None
    pausedAt: str | None = None
    resumedAt: str | None = None
    needsRestart: bool = False
