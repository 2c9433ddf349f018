"""
Credential Store

Persistence contract consumed by the auth and passkey services, and its
SQLAlchemy implementation composed from the per-table repositories.

Uniqueness violations surface as ConflictError so they render as 400s.
Any other database failure surfaces as DatabaseError.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clubauth.core.exceptions import ConflictError, DatabaseError
from clubauth.models.orm.passkey import PasskeyCredential
from clubauth.models.orm.password_reset_token import PasswordResetToken
from clubauth.models.orm.refresh_token import RefreshToken
from clubauth.models.orm.user import User
from clubauth.repositories.passkey import PasskeyRepository
from clubauth.repositories.password_reset import PasswordResetTokenRepository
from clubauth.repositories.refresh_token import RefreshTokenRepository
from clubauth.repositories.user import UserRepository

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class CredentialStore(Protocol):
    """Storage for users, sessions, passkeys and reset tokens."""

    # Users
    async def find_user_by_email(self, email: str) -> User | None: ...

    async def find_user_by_id(self, user_id: str) -> User | None: ...

    async def find_user_by_google_id(self, google_id: str) -> User | None: ...

    async def find_user_by_etlab_username(self, username: str) -> User | None: ...

    async def create_user(self, user: User) -> User: ...

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> User | None: ...

    # Refresh tokens
    async def insert_refresh_token(self, token: RefreshToken) -> RefreshToken: ...

    async def find_refresh_token_by_hash(
        self, token_hash: str, user_id: str | None = None
    ) -> RefreshToken | None: ...

    async def touch_refresh_token(self, token_id: str, now: int) -> None: ...

    async def delete_refresh_token(self, token_id: str) -> None: ...

    async def delete_all_refresh_tokens_for_user(self, user_id: str) -> int: ...

    # Passkeys
    async def insert_passkey_credential(self, credential: PasskeyCredential) -> PasskeyCredential: ...

    async def find_passkey_credential_by_id(
        self, credential_id: str, user_id: str | None = None
    ) -> PasskeyCredential | None: ...

    async def list_passkey_credentials_for_user(self, user_id: str) -> list[PasskeyCredential]: ...

    async def delete_passkey_credential(self, passkey_id: str, user_id: str) -> bool: ...

    async def touch_passkey_credential(self, passkey_id: str, now: int) -> None: ...

    # Password reset tokens
    async def insert_password_reset_token(self, token: PasswordResetToken) -> PasswordResetToken: ...

    async def find_password_reset_token(self, token: str) -> PasswordResetToken | None: ...

    async def mark_password_reset_token_used(self, token: str) -> None: ...

    # Transactions
    async def commit(self) -> None: ...


def _translate_errors(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Map SQLAlchemy failures onto domain errors."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except IntegrityError as e:
            logger.info(f"Uniqueness violation in {func.__name__}: {e.orig}")
            raise ConflictError("Resource already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Database error in {func.__name__}: {e}", exc_info=True)
            raise DatabaseError("Database error") from e

    return wrapper


class SqlCredentialStore:
    """CredentialStore over a request-scoped AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)
        self.refresh_tokens = RefreshTokenRepository(session)
        self.passkeys = PasskeyRepository(session)
        self.reset_tokens = PasswordResetTokenRepository(session)

    # ------------------------------------------------------------------ users

    @_translate_errors
    async def find_user_by_email(self, email: str) -> User | None:
        return await self.users.get_by_email(email)

    @_translate_errors
    async def find_user_by_id(self, user_id: str) -> User | None:
        return await self.users.get_by_id(user_id)

    @_translate_errors
    async def find_user_by_google_id(self, google_id: str) -> User | None:
        return await self.users.get_by_google_id(google_id)

    @_translate_errors
    async def find_user_by_etlab_username(self, username: str) -> User | None:
        return await self.users.get_by_etlab_username(username)

    @_translate_errors
    async def create_user(self, user: User) -> User:
        return await self.users.create(user)

    @_translate_errors
    async def update_user(self, user_id: str, fields: dict[str, Any]) -> User | None:
        return await self.users.update_fields(user_id, fields)

    # --------------------------------------------------------- refresh tokens

    @_translate_errors
    async def insert_refresh_token(self, token: RefreshToken) -> RefreshToken:
        return await self.refresh_tokens.create(token)

    @_translate_errors
    async def find_refresh_token_by_hash(
        self, token_hash: str, user_id: str | None = None
    ) -> RefreshToken | None:
        return await self.refresh_tokens.get_by_hash(token_hash, user_id)

    @_translate_errors
    async def touch_refresh_token(self, token_id: str, now: int) -> None:
        await self.refresh_tokens.touch(token_id, now)

    @_translate_errors
    async def delete_refresh_token(self, token_id: str) -> None:
        await self.refresh_tokens.delete_by_id(token_id)

    @_translate_errors
    async def delete_all_refresh_tokens_for_user(self, user_id: str) -> int:
        return await self.refresh_tokens.delete_all_for_user(user_id)

    # --------------------------------------------------------------- passkeys

    @_translate_errors
    async def insert_passkey_credential(self, credential: PasskeyCredential) -> PasskeyCredential:
        return await self.passkeys.create(credential)

    @_translate_errors
    async def find_passkey_credential_by_id(
        self, credential_id: str, user_id: str | None = None
    ) -> PasskeyCredential | None:
        return await self.passkeys.get_by_credential_id(credential_id, user_id)

    @_translate_errors
    async def list_passkey_credentials_for_user(self, user_id: str) -> list[PasskeyCredential]:
        return await self.passkeys.list_for_user(user_id)

    @_translate_errors
    async def delete_passkey_credential(self, passkey_id: str, user_id: str) -> bool:
        return await self.passkeys.delete_for_user(passkey_id, user_id)

    @_translate_errors
    async def touch_passkey_credential(self, passkey_id: str, now: int) -> None:
        await self.passkeys.record_use(passkey_id, now)

    # ---------------------------------------------------- password reset tokens

    @_translate_errors
    async def insert_password_reset_token(self, token: PasswordResetToken) -> PasswordResetToken:
        return await self.reset_tokens.create(token)

    @_translate_errors
    async def find_password_reset_token(self, token: str) -> PasswordResetToken | None:
        return await self.reset_tokens.get_by_token(token)

    @_translate_errors
    async def mark_password_reset_token_used(self, token: str) -> None:
        await self.reset_tokens.mark_used(token)

    # ------------------------------------------------------------ transactions

    @_translate_errors
    async def commit(self) -> None:
        """Commit pending changes ahead of the request's own commit or rollback."""
        await self.session.commit()
