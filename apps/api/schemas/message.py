"""Message and fragment schemas."""

import uuid

from pydantic import BaseModel, Field, field_validator

from apps.api.schemas.base import BaseResponse


def _check_sandbox_url(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError("sandbox_url must start with http:// or https://")
    return value


# ── Request Schemas ────────────────────────────────────

class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    role: str = Field(default="user", pattern="^(user|assistant)$")
    type: str = Field(default="result", pattern="^(result|error)$")


class FragmentCreate(BaseModel):
    sandbox_url: str
    title: str = Field(min_length=1, max_length=255)
    files: dict[str, str] = Field(default_factory=dict)

    @field_validator("sandbox_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _check_sandbox_url(value)


class FragmentUpdate(BaseModel):
    sandbox_url: str | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    files: dict[str, str] | None = None

    @field_validator("sandbox_url")
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        return _check_sandbox_url(value) if value is not None else value


# ── Response Schemas ───────────────────────────────────

class FragmentResponse(BaseResponse):
    sandbox_url: str
    title: str
    files: dict
    message_id: uuid.UUID


class MessageResponse(BaseResponse):
    content: str
    role: str
    type: str
    project_id: uuid.UUID
    fragment: FragmentResponse | None = None


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    total: int
