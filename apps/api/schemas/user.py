"""User schemas for request validation and response serialization."""

from pydantic import BaseModel, EmailStr, Field

from apps.api.schemas.base import BaseResponse


# ── Request Schemas ────────────────────────────────────

class UserCreate(BaseModel):
    """Data required to register a new user."""
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1, max_length=255)


class UserUpdate(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None


class IntegrationTokens(BaseModel):
    """Third-party tokens the user connects from the integrations page."""
    github_access_token: str | None = None
    github_username: str | None = None
    vercel_access_token: str | None = None


# ── Response Schemas ───────────────────────────────────

class UserResponse(BaseResponse):
    """User data returned by the API. Never includes password or tokens."""
    email: str
    full_name: str
    role: str
    is_active: bool
    github_username: str | None = None
    avatar_url: str | None = None
    github_connected: bool = False
    vercel_connected: bool = False


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int       # Seconds until expiry
    user: UserResponse
