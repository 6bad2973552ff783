"""Concurrent requests against a file-backed SQLite database and a shared Redis."""

import asyncio

import pytest
import pytest_asyncio

from src.core.exceptions import (
    AccountLockedError,
    InvalidCredentialsError,
    TokenInvalidError,
    TooManyAttemptsError,
)
from src.domain.value_objects.token import TokenPair
from src.infrastructure.database.async_db import create_async_db_engine
from src.infrastructure.dependency_injection.auth_dependencies import AuthContainer

STRONG_PASSWORD = "Str0ng!Passw0rd"
OTHER_STRONG_PASSWORD = "An0ther!Secret9"


@pytest_asyncio.fixture
async def file_container(tmp_path, redis_client, email_dispatcher, clock):
    """A container whose sessions each get their own database connection."""
    engine = create_async_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    container = await AuthContainer.create(
        redis=redis_client,
        engine=engine,
        email_dispatcher=email_dispatcher,
        clock=clock,
        create_tables=True,
    )
    yield container
    await engine.dispose()


@pytest.mark.asyncio
async def test_login_burst_from_one_address_is_limited(file_container):
    service = file_container.auth_service

    outcomes = await asyncio.gather(
        *(
            service.login("ghost@example.com", STRONG_PASSWORD, ip_address="9.9.9.9")
            for _ in range(20)
        ),
        return_exceptions=True,
    )

    assert sum(isinstance(o, InvalidCredentialsError) for o in outcomes) == 5
    assert sum(isinstance(o, TooManyAttemptsError) for o in outcomes) == 15


@pytest.mark.asyncio
async def test_wrong_password_burst_locks_the_account(file_container):
    service = file_container.auth_service
    user = (await service.register("alice@example.com", "alice", STRONG_PASSWORD)).user

    outcomes = await asyncio.gather(
        *(
            service.login("alice@example.com", OTHER_STRONG_PASSWORD, ip_address=f"10.8.0.{i}")
            for i in range(20)
        ),
        return_exceptions=True,
    )

    assert all(isinstance(o, (InvalidCredentialsError, AccountLockedError)) for o in outcomes)
    assert await file_container.lockout.is_account_locked(user.id)
    with pytest.raises(AccountLockedError):
        await service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.8.1.1")


@pytest.mark.asyncio
async def test_concurrent_refresh_with_one_token_succeeds_once(file_container):
    service = file_container.auth_service
    registered = await service.register("alice@example.com", "alice", STRONG_PASSWORD)

    outcomes = await asyncio.gather(
        *(service.refresh_token(registered.refresh_token) for _ in range(5)),
        return_exceptions=True,
    )

    winners = [o for o in outcomes if isinstance(o, TokenPair)]
    assert len(winners) == 1
    assert sum(isinstance(o, TokenInvalidError) for o in outcomes) == 4
    assert await service.refresh_token(winners[0].refresh_token)
