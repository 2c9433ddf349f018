"""
User Repository

Provides database operations for User model.
"""

from typing import Any

from sqlalchemy import select

from clubauth.models.orm.base import epoch_now
from clubauth.models.orm.user import User
from clubauth.repositories.base import BaseRepository

# Columns a caller may patch through update_fields
UPDATABLE_FIELDS = frozenset(
    {
        "email",
        "name",
        "phone",
        "password_hash",
        "google_id",
        "etlab_username",
        "profile_photo_url",
        "is_verified",
    }
)


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    model = User

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email address.

        Args:
            email: Email address to search for

        Returns:
            User or None if not found
        """
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_google_id(self, google_id: str) -> User | None:
        result = await self.session.execute(select(User).where(User.google_id == google_id))
        return result.scalar_one_or_none()

    async def get_by_etlab_username(self, username: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.etlab_username == username)
        )
        return result.scalar_one_or_none()

    async def update_fields(self, user_id: str, fields: dict[str, Any]) -> User | None:
        """
        Patch a user row.

        Only keys present in ``fields`` are written. ``updated_at`` is bumped
        whenever anything is written.

        Args:
            user_id: User id
            fields: Column name to new value

        Returns:
            Updated User, or None if the user does not exist

        Raises:
            ValueError: If ``fields`` names a column that may not be patched
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")

        user = await self.get_by_id(user_id)
        if user is None:
            return None

        for key, value in fields.items():
            setattr(user, key, value)
        if fields:
            user.updated_at = epoch_now()
            await self.session.flush()
        return user
