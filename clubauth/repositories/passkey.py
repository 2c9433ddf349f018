"""
Passkey Repository

Provides database operations for PasskeyCredential model.
"""

from sqlalchemy import delete, select, update

from clubauth.models.orm.passkey import PasskeyCredential
from clubauth.repositories.base import BaseRepository


class PasskeyRepository(BaseRepository[PasskeyCredential]):
    """Repository for PasskeyCredential model operations."""

    model = PasskeyCredential

    async def get_by_credential_id(
        self, credential_id: str, user_id: str | None = None
    ) -> PasskeyCredential | None:
        """
        Get a passkey by the authenticator's credential id.

        Args:
            credential_id: base64url credential id
            user_id: When given, the passkey must belong to this user

        Returns:
            PasskeyCredential or None if not found
        """
        query = select(PasskeyCredential).where(PasskeyCredential.credential_id == credential_id)
        if user_id is not None:
            query = query.where(PasskeyCredential.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[PasskeyCredential]:
        """List a user's passkeys, newest first."""
        result = await self.session.execute(
            select(PasskeyCredential)
            .where(PasskeyCredential.user_id == user_id)
            .order_by(PasskeyCredential.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_for_user(self, passkey_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            delete(PasskeyCredential).where(
                PasskeyCredential.id == passkey_id,
                PasskeyCredential.user_id == user_id,
            )
        )
        return result.rowcount > 0

    async def record_use(self, passkey_id: str, now: int) -> None:
        """Stamp ``last_used_at`` and bump the signature counter."""
        await self.session.execute(
            update(PasskeyCredential)
            .where(PasskeyCredential.id == passkey_id)
            .values(last_used_at=now, counter=PasskeyCredential.counter + 1)
        )
