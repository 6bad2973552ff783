import os
import time

# Must be set before any src import: settings are validated at import time.
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-signing-secret-0123456789-abcdefghijklmnop"
os.environ["BCRYPT_WORK_FACTOR"] = "4"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"

import fakeredis.aioredis
import pytest
import pytest_asyncio

from src.core.config.settings import settings
from src.domain.interfaces.email import IEmailDispatcher
from src.infrastructure.database.async_db import (
    create_async_db_engine,
    create_db_and_tables,
    create_session_factory,
)
from src.infrastructure.dependency_injection.auth_dependencies import AuthContainer
from src.infrastructure.redis import CacheClient
from src.infrastructure.repositories.credential_repository import CredentialRepository


class FakeClock:
    """Callable time source in seconds that tests can move forward."""

    def __init__(self, start: float | None = None):
        self.now = start if start is not None else float(int(time.time()))

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingEmailDispatcher(IEmailDispatcher):
    """Keeps every dispatched link in memory so tests can redeem the raw tokens."""

    def __init__(self):
        self.password_resets = []
        self.email_verifications = []

    async def send_password_reset(self, user, token, expires_at):
        self.password_resets.append({"user_id": user.id, "token": token, "expires_at": expires_at})

    async def send_email_verification(self, user, email, token, expires_at):
        self.email_verifications.append(
            {"user_id": user.id, "email": email, "token": token, "expires_at": expires_at}
        )


@pytest.fixture
def test_settings():
    return settings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def email_dispatcher():
    return RecordingEmailDispatcher()


@pytest_asyncio.fixture
async def redis_client():
    """In-memory Redis emulation with the same decoding as the production client."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    await client.flushall()
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def cache_client(redis_client):
    return CacheClient(redis_client, service_name="auth-service-test")


@pytest_asyncio.fixture
async def db_engine():
    """A fresh in-memory SQLite database with every table created."""
    engine = create_async_db_engine("sqlite+aiosqlite:///:memory:")
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def repository(session_factory):
    return CredentialRepository(session_factory)


@pytest_asyncio.fixture
async def container(db_engine, redis_client, email_dispatcher, clock):
    return await AuthContainer.create(
        redis=redis_client,
        engine=db_engine,
        email_dispatcher=email_dispatcher,
        clock=clock,
    )


@pytest_asyncio.fixture
async def auth_service(container):
    return container.auth_service
