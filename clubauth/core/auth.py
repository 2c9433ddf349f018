"""
Authentication dependencies

FastAPI dependencies that wire request-scoped services and resolve the
bearer access token to the current user.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clubauth.config import get_settings
from clubauth.core.cache import get_redis
from clubauth.core.database import DbSession, get_session_factory
from clubauth.core.exceptions import InvalidTokenError, NotFoundError, UnauthorizedError
from clubauth.core.security import TokenCodec, get_token_codec
from clubauth.models.orm.user import User
from clubauth.repositories.credential_store import CredentialStore, SqlCredentialStore
from clubauth.services.auth_service import AuthService, ClientInfo
from clubauth.services.challenge_broker import ChallengeBroker, create_challenge_broker
from clubauth.services.passkey_service import PasskeyService

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# Service wiring
# =============================================================================


async def get_credential_store(db: DbSession) -> CredentialStore:
    return SqlCredentialStore(db)


async def get_challenge_broker() -> ChallengeBroker:
    settings = get_settings()
    client = await get_redis() if settings.challenge_store == "redis" else None
    return create_challenge_broker(get_session_factory(), client, settings)


Store = Annotated[CredentialStore, Depends(get_credential_store)]
Challenges = Annotated[ChallengeBroker, Depends(get_challenge_broker)]


async def get_auth_service(store: Store, challenges: Challenges) -> AuthService:
    return AuthService(store, challenges)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


async def get_passkey_service(
    store: Store, challenges: Challenges, auth_service: AuthServiceDep
) -> PasskeyService:
    return PasskeyService(store, challenges, auth_service)


PasskeyServiceDep = Annotated[PasskeyService, Depends(get_passkey_service)]


def get_client_info(request: Request) -> ClientInfo:
    """IP address and user agent recorded with new sessions."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return ClientInfo(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


Client = Annotated[ClientInfo, Depends(get_client_info)]


# =============================================================================
# Current user
# =============================================================================


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    store: Store,
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> User:
    """
    Resolve the bearer access token to a user.

    Refresh tokens are rejected here. The user row is loaded so deleted
    accounts stop authenticating immediately.

    Raises:
        UnauthorizedError: Missing, invalid or expired token
        NotFoundError: Token is valid but the user no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing or invalid authorization header")

    try:
        payload = codec.verify_access(credentials.credentials)
    except InvalidTokenError as e:
        logger.debug(f"Rejected access token: {e.message}")
        raise UnauthorizedError("Invalid or expired token") from e

    user = await store.find_user_by_id(payload["sub"])
    if user is None:
        raise NotFoundError("User not found")
    return user


# Type alias for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
