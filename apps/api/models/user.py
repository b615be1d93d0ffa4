from sqlalchemy import String, Enum as SAEnum, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum

from apps.api.models.base import BaseModel



class UserRole(str, Enum):
    """What a user is allowed to do.

    - member: builds and deploys their own projects
    - admin: can see every project and manage users
    """
    MEMBER = "member"
    ADMIN = "admin"


class User(BaseModel):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)  # Null if using OAuth only
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(SAEnum(UserRole), default=UserRole.MEMBER, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # GitHub OAuth, populated when the user connects their GitHub account
    github_id: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    github_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Vercel personal token, set from the integrations page
    vercel_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    projects: Mapped[list["Project"]] = relationship(back_populates="owner")
