"""Tests for the Redis and database challenge brokers."""

import json
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from clubauth.models.enums import ChallengeType
from clubauth.models.orm.challenge import Challenge
from clubauth.services.challenge_broker import (
    ChallengeNotFoundError,
    DatabaseChallengeBroker,
    RedisChallengeBroker,
    create_challenge_broker,
)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for SETEX/GETDEL."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def getdel(self, key):
        return self.data.pop(key, None)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_broker(fake_redis, clock):
    return RedisChallengeBroker(fake_redis, clock=clock)


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = MagicMock()
    db.add = MagicMock()
    db.execute = AsyncMock()
    db.transactions = 0

    @asynccontextmanager
    async def begin():
        db.transactions += 1
        yield

    db.begin = begin
    return db


@pytest.fixture
def session_factory(mock_db):
    """Session factory handing out the mock session."""

    @asynccontextmanager
    async def factory():
        yield mock_db

    return factory


@pytest.mark.unit
class TestRedisChallengeBroker:
    async def test_issue_stores_record_with_ttl(self, redis_broker, fake_redis, clock):
        challenge_id = await redis_broker.issue(ChallengeType.PASSKEY_LOGIN, "user-1", 300)

        key = f"challenge:passkey_login:{challenge_id}"
        assert fake_redis.ttls[key] == 300
        assert json.loads(fake_redis.data[key]) == {
            "user_id": "user-1",
            "created_at": clock.now,
            "expires_at": clock.now + 300,
        }

    async def test_consume_returns_record_once(self, redis_broker):
        challenge_id = await redis_broker.issue(ChallengeType.PASSKEY_REGISTER, "user-1", 300)

        record = await redis_broker.consume(ChallengeType.PASSKEY_REGISTER, challenge_id)

        assert record.challenge == challenge_id
        assert record.type == ChallengeType.PASSKEY_REGISTER
        assert record.user_id == "user-1"
        with pytest.raises(ChallengeNotFoundError):
            await redis_broker.consume(ChallengeType.PASSKEY_REGISTER, challenge_id)

    async def test_consume_with_wrong_type_fails(self, redis_broker):
        challenge_id = await redis_broker.issue(ChallengeType.PASSKEY_REGISTER, "user-1", 300)

        with pytest.raises(ChallengeNotFoundError):
            await redis_broker.consume(ChallengeType.PASSKEY_LOGIN, challenge_id)

    async def test_consume_expired_fails(self, redis_broker, clock):
        challenge_id = await redis_broker.issue(ChallengeType.SIGNUP, "user-1", 600)

        clock.advance(600)

        with pytest.raises(ChallengeNotFoundError):
            await redis_broker.consume(ChallengeType.SIGNUP, challenge_id)

    async def test_consume_unknown_fails(self, redis_broker):
        with pytest.raises(ChallengeNotFoundError):
            await redis_broker.consume(ChallengeType.SIGNUP, "never-issued")

    async def test_issued_ids_are_unique(self, redis_broker):
        ids = {await redis_broker.issue(ChallengeType.SIGNUP, None, 60) for _ in range(20)}
        assert len(ids) == 20


@pytest.mark.unit
class TestDatabaseChallengeBroker:
    async def test_issue_adds_row_in_own_transaction(self, session_factory, mock_db, clock):
        broker = DatabaseChallengeBroker(session_factory, clock=clock)

        challenge_id = await broker.issue(ChallengeType.PASSKEY_LOGIN, "user-1", 300)

        mock_db.add.assert_called_once()
        row = mock_db.add.call_args[0][0]
        assert isinstance(row, Challenge)
        assert row.challenge == challenge_id
        assert row.type == ChallengeType.PASSKEY_LOGIN
        assert row.user_id == "user-1"
        assert row.expires_at == clock.now + 300
        assert mock_db.transactions == 1

    async def test_consume_returns_deleted_row(self, session_factory, mock_db, clock):
        broker = DatabaseChallengeBroker(session_factory, clock=clock)
        result = MagicMock()
        result.one_or_none.return_value = SimpleNamespace(
            user_id="user-1", created_at=clock.now, expires_at=clock.now + 300
        )
        mock_db.execute.return_value = result

        record = await broker.consume(ChallengeType.PASSKEY_LOGIN, "abc")

        assert record.challenge == "abc"
        assert record.user_id == "user-1"
        mock_db.execute.assert_awaited_once()
        assert mock_db.transactions == 1

    async def test_consume_missing_row_fails(self, session_factory, mock_db, clock):
        broker = DatabaseChallengeBroker(session_factory, clock=clock)
        result = MagicMock()
        result.one_or_none.return_value = None
        mock_db.execute.return_value = result

        with pytest.raises(ChallengeNotFoundError):
            await broker.consume(ChallengeType.PASSKEY_LOGIN, "abc")

    async def test_consume_expired_row_fails(self, session_factory, mock_db, clock):
        broker = DatabaseChallengeBroker(session_factory, clock=clock)
        result = MagicMock()
        result.one_or_none.return_value = SimpleNamespace(
            user_id="user-1", created_at=clock.now - 400, expires_at=clock.now - 100
        )
        mock_db.execute.return_value = result

        with pytest.raises(ChallengeNotFoundError):
            await broker.consume(ChallengeType.PASSKEY_LOGIN, "abc")

        # The expired row is still deleted
        assert mock_db.transactions == 1


@pytest.mark.unit
class TestCreateChallengeBroker:
    def test_database_backend(self, session_factory, settings):
        db_settings = settings.model_copy(update={"challenge_store": "database"})

        broker = create_challenge_broker(session_factory, None, db_settings)

        assert isinstance(broker, DatabaseChallengeBroker)
        assert broker.session_factory is session_factory

    def test_redis_backend(self, session_factory, fake_redis, settings):
        broker = create_challenge_broker(session_factory, fake_redis, settings)

        assert isinstance(broker, RedisChallengeBroker)

    def test_redis_backend_requires_client(self, session_factory, settings):
        with pytest.raises(ValueError):
            create_challenge_broker(session_factory, None, settings)
