"""End-to-end authentication journeys against SQLite and an in-memory Redis."""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.exceptions import (
    AccountLockedError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    TokenInvalidError,
    TooManyAttemptsError,
    TooManyRequestsError,
    UsernameAlreadyExistsError,
)

STRONG_PASSWORD = "Str0ng!Passw0rd"
OTHER_STRONG_PASSWORD = "An0ther!Secret9"


async def register_alice(auth_service):
    return await auth_service.register("Alice@Example.com", "alice", STRONG_PASSWORD)


@pytest.mark.asyncio
async def test_register_then_login(auth_service):
    # Arrange
    registered = await register_alice(auth_service)

    # Act
    response = await auth_service.login(
        "alice@example.com", STRONG_PASSWORD, ip_address="10.0.0.1", user_agent="pytest"
    )

    # Assert
    assert registered.user.email == "alice@example.com"
    assert response.user.id == registered.user.id
    assert response.session_id is not None
    payload = await auth_service.validate_token(response.access_token)
    assert payload.sub == registered.user.id
    assert payload.username == "alice"


@pytest.mark.asyncio
async def test_duplicate_registration_is_rejected(auth_service):
    await register_alice(auth_service)

    with pytest.raises(EmailAlreadyExistsError):
        await auth_service.register("ALICE@example.com", "alice2", STRONG_PASSWORD)
    with pytest.raises(UsernameAlreadyExistsError):
        await auth_service.register("bob@example.com", "alice", STRONG_PASSWORD)


@pytest.mark.asyncio
async def test_login_errors_do_not_reveal_registered_emails(auth_service):
    await register_alice(auth_service)

    with pytest.raises(InvalidCredentialsError) as unknown:
        await auth_service.login("ghost@example.com", STRONG_PASSWORD, ip_address="10.0.0.1")
    with pytest.raises(InvalidCredentialsError) as wrong:
        await auth_service.login("alice@example.com", OTHER_STRONG_PASSWORD, ip_address="10.0.0.2")

    assert (unknown.value.code, unknown.value.message) == (wrong.value.code, wrong.value.message)


@pytest.mark.asyncio
async def test_sessions_are_independent_per_login(auth_service, repository):
    user = (await register_alice(auth_service)).user

    first = await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.0.0.1")
    second = await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.0.0.2")

    assert first.access_token != second.access_token
    assert first.session_id != second.session_id
    assert await repository.count_active_sessions(user.id) == 2


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(auth_service):
    await register_alice(auth_service)
    login = await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.0.0.1")

    rotated = await auth_service.refresh_token(login.refresh_token)

    assert rotated.refresh_token != login.refresh_token
    with pytest.raises(TokenInvalidError):
        await auth_service.refresh_token(login.refresh_token)
    again = await auth_service.refresh_token(rotated.refresh_token)
    assert (await auth_service.validate_token(again.access_token)).username == "alice"


@pytest.mark.asyncio
async def test_access_and_refresh_tokens_are_not_interchangeable(auth_service):
    login = await register_alice(auth_service)

    with pytest.raises(TokenInvalidError):
        await auth_service.refresh_token(login.access_token)
    with pytest.raises(TokenInvalidError):
        await auth_service.validate_token(login.refresh_token)


@pytest.mark.asyncio
async def test_logout_revokes_access_token_immediately(auth_service, repository, container):
    user = (await register_alice(auth_service)).user
    login = await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.0.0.1")
    digest = container.token_service.hash_token(login.access_token)

    await auth_service.logout(login.access_token, user_id=user.id)

    with pytest.raises(TokenInvalidError, match="revoked"):
        await auth_service.validate_token(login.access_token)
    assert await repository.find_session_by_token_hash(digest) is None
    assert await container.auth_cache.get_session(login.session_id) is None
    # Refresh tokens survive logout.
    assert await auth_service.refresh_token(login.refresh_token)


@pytest.mark.asyncio
async def test_login_rate_limit_per_ip(auth_service, clock):
    await register_alice(auth_service)
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("ghost@example.com", STRONG_PASSWORD, ip_address="10.0.0.9")

    with pytest.raises(TooManyAttemptsError) as exc_info:
        await auth_service.login("ghost@example.com", STRONG_PASSWORD, ip_address="10.0.0.9")

    assert exc_info.value.reset_time == int(clock() * 1000) + 900_000
    with pytest.raises(InvalidCredentialsError):
        await auth_service.login("ghost@example.com", STRONG_PASSWORD, ip_address="10.0.0.10")

    clock.advance(901)
    response = await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.0.0.9")
    assert response.access_token


@pytest.mark.asyncio
async def test_account_lockout_after_five_failures(auth_service, clock):
    await register_alice(auth_service)

    for attempt in range(5):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(
                "alice@example.com", OTHER_STRONG_PASSWORD, ip_address=f"10.1.0.{attempt}"
            )

    with pytest.raises(AccountLockedError) as exc_info:
        await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.1.1.1")
    assert exc_info.value.lockout_until is not None

    clock.advance(30 * 60)
    response = await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.1.1.2")
    assert response.access_token


@pytest.mark.asyncio
async def test_successful_login_resets_failure_count(auth_service, container):
    user = (await register_alice(auth_service)).user
    for attempt in range(4):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(
                "alice@example.com", OTHER_STRONG_PASSWORD, ip_address=f"10.2.0.{attempt}"
            )

    await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.2.1.0")
    status = await container.lockout.increment_failed_attempts(user.id)

    assert status.attempts == 1


@pytest.mark.asyncio
async def test_password_reset_journey(auth_service, email_dispatcher):
    registered = await register_alice(auth_service)

    await auth_service.forgot_password("ALICE@example.com")
    token = email_dispatcher.password_resets[-1]["token"]
    await auth_service.reset_password(token, OTHER_STRONG_PASSWORD)

    with pytest.raises(InvalidCredentialsError):
        await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.3.0.1")
    assert await auth_service.login(
        "alice@example.com", OTHER_STRONG_PASSWORD, ip_address="10.3.0.2"
    )
    with pytest.raises(TokenInvalidError):
        await auth_service.reset_password(token, "Y3t!AnotherPass")
    with pytest.raises(TokenInvalidError):
        await auth_service.refresh_token(registered.refresh_token)


@pytest.mark.asyncio
async def test_forgot_password_unknown_email_is_silent(auth_service, email_dispatcher):
    await auth_service.forgot_password("ghost@example.com")

    assert email_dispatcher.password_resets == []


@pytest.mark.asyncio
async def test_forgot_password_rate_limit_per_email(auth_service, email_dispatcher):
    await register_alice(auth_service)

    for _ in range(3):
        await auth_service.forgot_password("alice@example.com")
    with pytest.raises(TooManyRequestsError):
        await auth_service.forgot_password("alice@example.com")

    assert len(email_dispatcher.password_resets) == 3


@pytest.mark.asyncio
async def test_change_password_revokes_refresh_tokens(auth_service):
    registered = await register_alice(auth_service)

    with pytest.raises(InvalidCredentialsError, match="Current password is incorrect"):
        await auth_service.change_password(
            registered.user.id, OTHER_STRONG_PASSWORD, OTHER_STRONG_PASSWORD
        )
    await auth_service.change_password(registered.user.id, STRONG_PASSWORD, OTHER_STRONG_PASSWORD)

    with pytest.raises(TokenInvalidError):
        await auth_service.refresh_token(registered.refresh_token)
    assert await auth_service.login(
        "alice@example.com", OTHER_STRONG_PASSWORD, ip_address="10.4.0.1"
    )


@pytest.mark.asyncio
async def test_email_verification_journey(auth_service, email_dispatcher):
    registered = await register_alice(auth_service)

    await auth_service.request_email_verification(registered.user.id)
    sent = email_dispatcher.email_verifications[-1]
    await auth_service.verify_email(sent["token"])

    assert sent["email"] == "alice@example.com"
    with pytest.raises(TokenInvalidError):
        await auth_service.verify_email(sent["token"])


@pytest.mark.asyncio
async def test_deactivated_user_cannot_login_or_refresh(auth_service):
    registered = await register_alice(auth_service)

    await auth_service.deactivate_user(registered.user.id)

    with pytest.raises(AccountLockedError):
        await auth_service.login("alice@example.com", STRONG_PASSWORD, ip_address="10.5.0.1")
    with pytest.raises(TokenInvalidError):
        await auth_service.refresh_token(registered.refresh_token)


@pytest.mark.asyncio
async def test_container_health_and_shutdown(container):
    assert await container.health_check() == {"database": True, "cache": True}

    await container.aclose()


@pytest.mark.asyncio
async def test_register_and_login_tokens_both_validate(auth_service):
    registered = await auth_service.register("a@x.com", "a", "Aa1!aaaa")

    login = await auth_service.login("a@x.com", "Aa1!aaaa", ip_address="10.6.0.1")

    assert login.access_token != registered.access_token
    assert (await auth_service.validate_token(registered.access_token)).sub == registered.user.id
    assert (await auth_service.validate_token(login.access_token)).sub == registered.user.id


@pytest.mark.asyncio
async def test_purge_expired_sessions(auth_service, repository):
    registered = await register_alice(auth_service)
    await repository.create_session(
        registered.user.id, "e" * 64, datetime.now(timezone.utc) - timedelta(minutes=1)
    )

    assert await auth_service.purge_expired_sessions() == 1
