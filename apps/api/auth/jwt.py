"""Access token issue and verification.

Tokens are HS256 JWTs whose `sub` claim is the user id. They are signed, not
encrypted, so nothing secret goes in the payload.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from apps.api.config import settings


def create_access_token(user_id: UUID, expires_minutes: int | None = None) -> tuple[str, int]:
    """Sign a token for `user_id`.

    Returns:
        (token, expires_in_seconds)
    """
    minutes = expires_minutes or settings.jwt_expire_minutes
    issued_at = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "exp": issued_at + timedelta(minutes=minutes),
        "iat": issued_at,
    }

    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, minutes * 60


def decode_access_token(token: str) -> UUID | None:
    """Return the user id carried by a valid token, or None.

    Expired, tampered and malformed tokens all yield None.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return UUID(subject)
    except ValueError:
        return None
