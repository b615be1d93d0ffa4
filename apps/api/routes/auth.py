"""Authentication routes: register, login, refresh, profile and integrations.

These endpoints handle:
- Creating new user accounts
- Logging in (returns a JWT token)
- Refreshing an expiring token
- Reading and updating the current user's profile
- Storing the GitHub / Vercel tokens used for sync and deploys
"""

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import hash_password, verify_password, create_access_token, get_current_user
from apps.api.database import get_db
from apps.api.exceptions import ConflictException, UnauthorizedException
from apps.api.models.user import User
from apps.api.repositories import user_repo
from apps.api.schemas.user import IntegrationTokens, UserCreate, UserResponse, UserUpdate, TokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Helper ────────────────────────────────────────────

def _user_to_response(user: User) -> UserResponse:
    """Convert a User model to a UserResponse. Tokens are reported as flags only."""
    return UserResponse(
        id=user.id,
        created_at=user.created_at,
        updated_at=user.updated_at,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_active=user.is_active,
        github_username=user.github_username,
        avatar_url=user.avatar_url,
        github_connected=bool(user.github_access_token),
        vercel_connected=bool(user.vercel_access_token),
    )


def _token_response(user: User) -> TokenResponse:
    access_token, expires_in = create_access_token(user.id)
    return TokenResponse(access_token=access_token, expires_in=expires_in, user=_user_to_response(user))


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """Register a new account and log it in immediately."""
    if await user_repo.get_by_email(db, body.email):
        raise ConflictException("An account with this email already exists")

    user = await user_repo.create(
        db,
        email=body.email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
    )
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Log in with email (sent as `username`) and password, as form data.

    The OAuth2 form format keeps the Swagger UI "Authorize" button working.
    """
    user = await user_repo.get_by_email(db, form_data.username)
    if not user or not user.hashed_password:
        raise UnauthorizedException("Invalid email or password")

    if not verify_password(form_data.password, user.hashed_password):
        raise UnauthorizedException("Invalid email or password")

    if not user.is_active:
        raise UnauthorizedException("Account is deactivated")

    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(current_user: User = Depends(get_current_user)):
    """Swap a still-valid token for a fresh one. Expired tokens get 401."""
    return _token_response(current_user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return _user_to_response(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    update_data = body.model_dump(exclude_unset=True)
    if update_data:
        current_user = await user_repo.update(db, current_user, **update_data)
    return _user_to_response(current_user)


@router.put("/integrations", response_model=UserResponse)
async def set_integrations(
    body: IntegrationTokens,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Connect (or, with an empty string, disconnect) GitHub and Vercel.

    Only the fields present in the body are touched.
    """
    update_data = {
        key: (value or None)
        for key, value in body.model_dump(exclude_unset=True).items()
    }
    if update_data:
        current_user = await user_repo.update(db, current_user, **update_data)
    return _user_to_response(current_user)
