"""
Password Reset Token Repository
"""

from sqlalchemy import select, update

from clubauth.models.orm.password_reset_token import PasswordResetToken
from clubauth.repositories.base import BaseRepository


class PasswordResetTokenRepository(BaseRepository[PasswordResetToken]):
    """Repository for PasswordResetToken model operations."""

    model = PasswordResetToken

    async def get_by_token(self, token: str) -> PasswordResetToken | None:
        result = await self.session.execute(
            select(PasswordResetToken).where(PasswordResetToken.token == token)
        )
        return result.scalar_one_or_none()

    async def mark_used(self, token: str) -> None:
        await self.session.execute(
            update(PasswordResetToken).where(PasswordResetToken.token == token).values(used=True)
        )
