"""
Challenge Broker

Single-use, short-lived challenges that tie a ceremony (passkey registration
or login, EtLab signup completion) to a user.

Two interchangeable backends share one contract: ``consume`` returns the
record at most once and only before it expires. Reading and deleting happen
in a single store operation so concurrent verifications cannot both succeed.
"""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clubauth.config import Settings, get_settings
from clubauth.core.exceptions import NotFoundError
from clubauth.core.security import generate_token
from clubauth.models.enums import ChallengeType
from clubauth.models.orm.challenge import Challenge

CHALLENGE_KEY_PREFIX = "challenge:"


class ChallengeNotFoundError(NotFoundError):
    """Challenge is unknown, already consumed, or expired."""


@dataclass(frozen=True)
class ChallengeRecord:
    challenge: str
    type: ChallengeType
    user_id: str | None
    created_at: int
    expires_at: int


class ChallengeBroker(Protocol):
    async def issue(
        self, type: ChallengeType, user_id: str | None, ttl_seconds: int
    ) -> str: ...

    async def consume(self, type: ChallengeType, challenge_id: str) -> ChallengeRecord: ...


class RedisChallengeBroker:
    """Challenges as Redis keys with a TTL, consumed with GETDEL."""

    def __init__(self, client: redis.Redis, clock: Callable[[], float] = time.time):
        self.redis = client
        self._clock = clock

    @staticmethod
    def _key(type: ChallengeType, challenge_id: str) -> str:
        return f"{CHALLENGE_KEY_PREFIX}{type.value}:{challenge_id}"

    async def issue(self, type: ChallengeType, user_id: str | None, ttl_seconds: int) -> str:
        challenge_id = generate_token()
        now = int(self._clock())
        record = {
            "user_id": user_id,
            "created_at": now,
            "expires_at": now + ttl_seconds,
        }
        await self.redis.setex(self._key(type, challenge_id), ttl_seconds, json.dumps(record))
        return challenge_id

    async def consume(self, type: ChallengeType, challenge_id: str) -> ChallengeRecord:
        raw = await self.redis.getdel(self._key(type, challenge_id))
        if raw is None:
            raise ChallengeNotFoundError("Challenge not found or expired")

        data = json.loads(raw)
        if data["expires_at"] <= int(self._clock()):
            raise ChallengeNotFoundError("Challenge not found or expired")

        return ChallengeRecord(
            challenge=challenge_id,
            type=type,
            user_id=data.get("user_id"),
            created_at=data["created_at"],
            expires_at=data["expires_at"],
        )


class DatabaseChallengeBroker:
    """
    Challenges in the ``challenges`` table.

    Each call runs in its own short transaction, independent of the request
    session, so a consumed challenge stays consumed when the request later
    fails. ``DELETE ... RETURNING`` removes the row and hands it back in one
    statement. Expired rows are deleted on read and then rejected.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], float] = time.time,
    ):
        self.session_factory = session_factory
        self._clock = clock

    async def issue(self, type: ChallengeType, user_id: str | None, ttl_seconds: int) -> str:
        challenge_id = generate_token()
        now = int(self._clock())
        async with self.session_factory() as session, session.begin():
            session.add(
                Challenge(
                    challenge=challenge_id,
                    type=type,
                    user_id=user_id,
                    created_at=now,
                    expires_at=now + ttl_seconds,
                )
            )
        return challenge_id

    async def consume(self, type: ChallengeType, challenge_id: str) -> ChallengeRecord:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                delete(Challenge)
                .where(Challenge.challenge == challenge_id, Challenge.type == type)
                .returning(Challenge.user_id, Challenge.created_at, Challenge.expires_at)
            )
            row = result.one_or_none()

        if row is None or row.expires_at <= int(self._clock()):
            raise ChallengeNotFoundError("Challenge not found or expired")

        return ChallengeRecord(
            challenge=challenge_id,
            type=type,
            user_id=row.user_id,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )


def create_challenge_broker(
    session_factory: async_sessionmaker[AsyncSession],
    client: redis.Redis | None,
    settings: Settings | None = None,
) -> ChallengeBroker:
    """
    Build the broker selected by ``settings.challenge_store``.

    Args:
        session_factory: Session factory (used by the database backend)
        client: Redis client (required by the redis backend)
        settings: Optional settings override

    Returns:
        ChallengeBroker implementation
    """
    settings = settings or get_settings()
    if settings.challenge_store == "database":
        return DatabaseChallengeBroker(session_factory)
    if client is None:
        raise ValueError("Redis client required for the redis challenge store")
    return RedisChallengeBroker(client)
