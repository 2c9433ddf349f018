"""
Security Utilities

Stateless signed tokens (access + refresh), one-way token digests and
password hashing.

Access tokens are never persisted, so they stay valid until their own expiry
even after the refresh token they came from is revoked. Keep their TTL short.
"""

import hashlib
import hmac
import re
import secrets
import time
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import jwt
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError
from pwdlib.hashers.bcrypt import BcryptHasher

from clubauth.config import get_settings
from clubauth.core.exceptions import InvalidTokenError, TokenExpiredError

REFRESH_TOKEN_TYPE = "refresh"


class TokenCodec:
    """
    Issue and verify HS256 signed tokens.

    The signing secret is fixed at construction. ``clock`` returns epoch
    seconds and exists so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def issue_access_token(
        self,
        user_id: str,
        email: str,
        phone: str | None,
        name: str,
        ttl_seconds: int,
    ) -> str:
        """
        Create a short-lived access token.

        Args:
            user_id: Subject of the token
            email: User email claim
            phone: User phone claim (may be None)
            name: User display name claim
            ttl_seconds: Lifetime of the token

        Returns:
            Encoded token string (header.payload.signature)
        """
        now = self.now()
        payload = {
            "sub": user_id,
            "email": email,
            "phone": phone,
            "name": name,
            "iat": now,
            "exp": now + ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_refresh_token(self, user_id: str, ttl_seconds: int) -> str:
        """
        Create a long-lived refresh token.

        Only the digest of this value is ever stored server side.
        """
        now = self.now()
        payload = {
            "sub": user_id,
            "type": REFRESH_TOKEN_TYPE,
            "iat": now,
            # Two refresh tokens minted in the same second for the same user
            # must still hash differently.
            "jti": secrets.token_hex(8),
            "exp": now + ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verify signature and expiry of a token.

        Args:
            token: Encoded token string

        Returns:
            Decoded payload

        Raises:
            InvalidTokenError: If the token is malformed or tampered with
            TokenExpiredError: If ``exp`` is not in the future
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "exp"],
                },
            )
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Invalid or expired token") from e

        try:
            exp = int(payload["exp"])
        except (TypeError, ValueError) as e:
            raise InvalidTokenError("Invalid or expired token") from e

        if exp <= self.now():
            raise TokenExpiredError("Invalid or expired token")

        return payload

    def verify_access(self, token: str) -> dict[str, Any]:
        """Verify a token and reject refresh tokens presented as access tokens."""
        payload = self.verify(token)
        if payload.get("type") == REFRESH_TOKEN_TYPE:
            raise InvalidTokenError("Invalid or expired token")
        return payload

    def verify_refresh(self, token: str) -> dict[str, Any]:
        """Verify a token and require ``type == "refresh"``."""
        payload = self.verify(token)
        if payload.get("type") != REFRESH_TOKEN_TYPE:
            raise InvalidTokenError("Invalid or expired refresh token")
        return payload


@lru_cache
def get_token_codec() -> TokenCodec:
    """Process-wide codec built from settings once at first use."""
    settings = get_settings()
    return TokenCodec(settings.secret_key, algorithm=settings.algorithm)


def hash_token(token: str) -> str:
    """
    One-way SHA-256 hex digest of a token.

    Refresh tokens are stored and looked up by this digest only.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token() -> str:
    """URL-safe random identifier for challenges and reset tokens."""
    return secrets.token_urlsafe(32)


# =============================================================================
# Password Hashing
# =============================================================================


class LegacySHA256Hasher:
    """
    pwdlib hasher for unsalted SHA-256 hex digests.

    Matches the hashes written by the previous deployment so existing
    accounts keep working.
    """

    _pattern = re.compile(r"^[0-9a-f]{64}$")

    @classmethod
    def identify(cls, hash: str | bytes) -> bool:
        if isinstance(hash, bytes):
            hash = hash.decode()
        return bool(cls._pattern.match(hash))

    def hash(self, password: str | bytes, *, salt: bytes | None = None) -> str:
        if isinstance(password, str):
            password = password.encode("utf-8")
        return hashlib.sha256(password).hexdigest()

    def verify(self, password: str | bytes, hash: str | bytes) -> bool:
        if isinstance(hash, bytes):
            hash = hash.decode()
        return hmac.compare_digest(self.hash(password), hash)

    def check_needs_rehash(self, hash: str | bytes) -> bool:
        return False


@lru_cache
def _password_hash_for(scheme: str) -> PasswordHash:
    # The first hasher writes new hashes, the rest only verify.
    if scheme == "sha256":
        return PasswordHash((LegacySHA256Hasher(), BcryptHasher()))
    return PasswordHash((BcryptHasher(), LegacySHA256Hasher()))


def get_password_hash(password: str) -> str:
    """
    Hash a password with the configured scheme.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password string
    """
    return _password_hash_for(get_settings().password_hash_scheme).hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> tuple[bool, str | None]:
    """
    Verify a password and report whether the stored hash should be replaced.

    Args:
        plain_password: The password to verify
        hashed_password: Stored hash (None when the account has no password)

    Returns:
        Tuple of (valid, updated_hash). updated_hash is set when the stored
        hash uses a scheme other than the configured one.
    """
    if not hashed_password:
        return False, None
    context = _password_hash_for(get_settings().password_hash_scheme)
    try:
        return context.verify_and_update(plain_password, hashed_password)
    except UnknownHashError:
        return False, None
