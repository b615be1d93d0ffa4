"""FastAPI dependencies that resolve the calling user from a bearer token.

    @router.get("/projects")
    async def list_projects(current_user: User = Depends(get_current_user)):
        ...
"""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth.jwt import decode_access_token
from apps.api.database import get_db
from apps.api.exceptions import UnauthorizedException, ForbiddenException
from apps.api.models.user import User, UserRole
from apps.api.repositories import user_repo

# tokenUrl also drives the Authorize button in /docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user, or fail with 401."""
    user_id = decode_access_token(token)
    if user_id is None:
        raise UnauthorizedException("Invalid or expired token")

    user = await user_repo.get_by_id(db, user_id)
    if user is None:
        raise UnauthorizedException("User not found")

    if not user.is_active:
        raise UnauthorizedException("User account is deactivated")

    return user


def require_role(*allowed_roles: UserRole):
    """Build a dependency that only lets the given roles through.

        @router.get("/admin/projects")
        async def all_projects(user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """
    async def role_checker(
        current_user: User = Depends(get_current_user),
    ) -> User:
        if current_user.role not in allowed_roles:
            raise ForbiddenException(
                f"This action requires one of these roles: {', '.join(r.value for r in allowed_roles)}"
            )
        return current_user

    return role_checker
