"""
Refresh Token Repository

Lookups are by SHA-256 digest only; raw tokens never reach this layer.
"""

from sqlalchemy import delete, select, update

from clubauth.models.orm.refresh_token import RefreshToken
from clubauth.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Repository for RefreshToken model operations."""

    model = RefreshToken

    async def get_by_hash(self, token_hash: str, user_id: str | None = None) -> RefreshToken | None:
        """
        Find a stored refresh token by digest.

        Args:
            token_hash: SHA-256 hex digest of the raw token
            user_id: When given, the row must also belong to this user

        Returns:
            RefreshToken or None if not found
        """
        query = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        if user_id is not None:
            query = query.where(RefreshToken.user_id == user_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def touch(self, token_id: str, now: int) -> None:
        await self.session.execute(
            update(RefreshToken).where(RefreshToken.id == token_id).values(last_used_at=now)
        )

    async def delete_by_id(self, token_id: str) -> bool:
        result = await self.session.execute(
            delete(RefreshToken).where(RefreshToken.id == token_id)
        )
        return result.rowcount > 0

    async def delete_all_for_user(self, user_id: str) -> int:
        """
        Revoke every session of a user.

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id)
        )
        return result.rowcount
