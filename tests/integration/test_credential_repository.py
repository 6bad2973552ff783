from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from src.core.exceptions import (
    DatabaseError,
    EmailAlreadyExistsError,
    TokenInvalidError,
    UsernameAlreadyExistsError,
)
from src.infrastructure.database.async_db import (
    check_database_health,
    create_async_db_engine,
    create_session_factory,
)
from src.infrastructure.repositories.credential_repository import CredentialRepository


def in_future(**delta):
    return datetime.now(timezone.utc) + timedelta(**delta)


def in_past(**delta):
    return datetime.now(timezone.utc) - timedelta(**delta)


@pytest_asyncio.fixture
async def user(repository):
    return await repository.create_user("alice@example.com", "alice", "hash")


@pytest.mark.asyncio
async def test_create_and_fetch_user(repository, user):
    assert (await repository.get_user_by_id(user.id)).email == "alice@example.com"
    assert (await repository.get_user_by_email("alice@example.com")).id == user.id
    assert (await repository.get_user_by_username("alice")).id == user.id
    assert await repository.get_user_by_email("nobody@example.com") is None
    assert user.is_active


@pytest.mark.asyncio
async def test_unique_constraints_map_to_conflicts(repository, user):
    with pytest.raises(EmailAlreadyExistsError):
        await repository.create_user("alice@example.com", "someone-else", "hash")
    with pytest.raises(UsernameAlreadyExistsError):
        await repository.create_user("other@example.com", "alice", "hash")


@pytest.mark.asyncio
async def test_rotation_revokes_previous_exactly_once(repository, user):
    original = await repository.create_refresh_token(user.id, "a" * 64, in_future(days=7))

    replacement = await repository.rotate_refresh_token(
        original.id, user.id, "b" * 64, in_future(days=7)
    )

    assert await repository.find_refresh_token_by_hash("a" * 64) is None
    assert (await repository.find_refresh_token_by_hash("b" * 64)).id == replacement.id
    with pytest.raises(TokenInvalidError):
        await repository.rotate_refresh_token(original.id, user.id, "c" * 64, in_future(days=7))
    assert await repository.find_refresh_token_by_hash("c" * 64) is None


@pytest.mark.asyncio
async def test_expired_refresh_token_is_not_found(repository, user):
    await repository.create_refresh_token(user.id, "a" * 64, in_past(seconds=1))

    assert await repository.find_refresh_token_by_hash("a" * 64) is None


@pytest.mark.asyncio
async def test_update_password_revokes_refresh_tokens(repository, user):
    await repository.create_refresh_token(user.id, "a" * 64, in_future(days=7))

    await repository.update_password(user.id, "new-hash")

    assert (await repository.get_user_by_id(user.id)).password_hash == "new-hash"
    assert await repository.find_refresh_token_by_hash("a" * 64) is None


@pytest.mark.asyncio
async def test_sessions_by_digest_and_expiry_sweep(repository, user):
    live = await repository.create_session(user.id, "s" * 64, in_future(minutes=15), "10.0.0.1")
    await repository.create_session(user.id, "t" * 64, in_past(minutes=1))

    assert (await repository.find_session_by_token_hash("s" * 64)).id == live.id
    assert await repository.find_session_by_token_hash("t" * 64) is None
    assert await repository.count_active_sessions(user.id) == 1
    assert await repository.delete_expired_sessions() == 1
    assert await repository.delete_session(live.id)
    assert not await repository.delete_session(live.id)


@pytest.mark.asyncio
async def test_password_reset_is_single_use(repository, user):
    await repository.create_refresh_token(user.id, "a" * 64, in_future(days=7))
    reset = await repository.create_password_reset(user.id, "r" * 64, in_future(minutes=60))

    found = await repository.find_password_reset_by_token_hash("r" * 64)
    await repository.complete_password_reset(found.id, user.id, "new-hash")

    assert (await repository.get_user_by_id(user.id)).password_hash == "new-hash"
    assert await repository.find_refresh_token_by_hash("a" * 64) is None
    assert await repository.find_password_reset_by_token_hash("r" * 64) is None
    with pytest.raises(TokenInvalidError):
        await repository.complete_password_reset(reset.id, user.id, "other-hash")
    assert (await repository.get_user_by_id(user.id)).password_hash == "new-hash"


@pytest.mark.asyncio
async def test_failed_reset_claim_leaves_password_unchanged(repository, user):
    reset = await repository.create_password_reset(user.id, "r" * 64, in_past(seconds=1))

    with pytest.raises(TokenInvalidError):
        await repository.complete_password_reset(reset.id, user.id, "new-hash")

    assert (await repository.get_user_by_id(user.id)).password_hash == "hash"


@pytest.mark.asyncio
async def test_mark_password_reset_as_used(repository, user):
    reset = await repository.create_password_reset(user.id, "r" * 64, in_future(minutes=60))

    assert await repository.mark_password_reset_as_used(reset.id)
    assert not await repository.mark_password_reset_as_used(reset.id)


@pytest.mark.asyncio
async def test_email_verification_is_single_use(repository, user):
    verification = await repository.create_email_verification(
        user.id, user.email, "v" * 64, in_future(hours=24)
    )

    assert (await repository.find_email_verification_by_token_hash("v" * 64)).id == verification.id
    assert await repository.mark_email_as_verified(verification.id)
    assert not await repository.mark_email_as_verified(verification.id)
    assert await repository.find_email_verification_by_token_hash("v" * 64) is None


@pytest.mark.asyncio
async def test_deactivate_user(repository, user):
    await repository.create_refresh_token(user.id, "a" * 64, in_future(days=7))

    assert await repository.deactivate_user(user.id)
    assert not await repository.deactivate_user(user.id)
    assert not (await repository.get_user_by_id(user.id)).is_active
    assert await repository.find_refresh_token_by_hash("a" * 64) is None


@pytest.mark.asyncio
async def test_revoke_all_user_refresh_tokens(repository, user):
    await repository.create_refresh_token(user.id, "a" * 64, in_future(days=7))
    await repository.create_refresh_token(user.id, "b" * 64, in_future(days=7))

    assert await repository.revoke_all_user_refresh_tokens(user.id) == 2
    assert await repository.revoke_all_user_refresh_tokens(user.id) == 0


@pytest.mark.asyncio
async def test_store_failures_surface_as_database_error():
    engine = create_async_db_engine("sqlite+aiosqlite:///:memory:")
    repository = CredentialRepository(create_session_factory(engine))

    try:
        with pytest.raises(DatabaseError):
            await repository.get_user_by_email("alice@example.com")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_database_health_check(session_factory):
    assert await check_database_health(session_factory)
