from datetime import datetime, timedelta, timezone
from typing import Awaitable, Optional

from structlog import get_logger

from src.core.config.settings import Settings, settings as default_settings
from src.core.exceptions import (
    AccountLockedError,
    CacheUnavailableError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    TokenInvalidError,
    TooManyAttemptsError,
    TooManyRequestsError,
    UserNotFoundError,
    UsernameAlreadyExistsError,
)
from src.core.rate_limiting.config import build_auth_policies
from src.core.rate_limiting.fixed_window import FixedWindowRateLimiter
from src.domain.entities.user import User
from src.domain.interfaces.email import IEmailDispatcher
from src.domain.interfaces.repositories import ICredentialRepository
from src.domain.services.auth.lockout import LockoutTracker
from src.domain.services.auth.password_policy import PasswordPolicyValidator
from src.domain.services.auth.token import TokenService
from src.domain.value_objects.auth_response import AuthResponse, UserSummary
from src.domain.value_objects.session_data import RefreshTokenData, SessionData
from src.domain.value_objects.token import TokenPair, TokenPayload, TokenType
from src.infrastructure.cache.auth_cache import AuthCacheService
from src.utils.i18n import get_translated_message
from src.utils.masking import mask_email, normalize_email
from src.utils.security import dummy_verify, generate_secure_token, hash_password, verify_password

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


class AuthService:
    """Orchestrates the authentication flows over the store, cache and token service.

    Each public coroutine is one flow. Steps run strictly in the documented
    order; the order of the login checks (rate limit, lookup, lockout, password,
    active flag) is part of the security contract.

    Typed ``AuthServiceError`` subclasses are raised deliberately and propagate
    unchanged. Store failures propagate. A cache outage does not stop login,
    refresh or password reset:

    - the rate limit and blacklist checks fail open inside their components;
    - the lockout check fails open here, logged as ``lockout_check_fail_open``;
    - cache writes that mirror a committed store write, or that no
      authorization decision reads, are skipped and logged as ``cache_write_degraded``.

    Blacklisting on logout is the one cache write that still propagates.

    Attributes:
        repository (ICredentialRepository): Durable users, sessions and tokens.
        token_service (TokenService): Signs, validates and persists tokens.
        cache (AuthCacheService): Session snapshots and the blacklist.
        rate_limiter (FixedWindowRateLimiter): Login and password reset throttling.
        lockout (LockoutTracker): Failed-login counter and account lockout.
        password_policy (PasswordPolicyValidator): Strength rules for new passwords.
        email_dispatcher (IEmailDispatcher): Delivers reset and verification links.
    """

    def __init__(
        self,
        repository: ICredentialRepository,
        token_service: TokenService,
        cache: AuthCacheService,
        rate_limiter: FixedWindowRateLimiter,
        lockout: LockoutTracker,
        email_dispatcher: IEmailDispatcher,
        password_policy: Optional[PasswordPolicyValidator] = None,
        config: Optional[Settings] = None,
    ):
        self.repository = repository
        self.token_service = token_service
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.lockout = lockout
        self.email_dispatcher = email_dispatcher
        self.settings = config or default_settings
        self.password_policy = password_policy or PasswordPolicyValidator(self.settings)
        self.policies = build_auth_policies(self.settings)

    # -- Registration ---------------------------------------------------------

    async def register(self, email: str, username: str, password: str) -> AuthResponse:
        """Create an account and issue its first token pair.

        Args:
            email: Login email; stored lower-cased.
            username: Public handle.
            password: Plain text password, checked against the password policy.

        Returns:
            AuthResponse: The new user with an access and refresh token.

        Raises:
            EmailAlreadyExistsError: If the email is registered.
            UsernameAlreadyExistsError: If the username is taken.
            PasswordPolicyError: If the password is too weak.
        """
        email = normalize_email(email)
        logger.info("user_registration_attempt", email=mask_email(email))

        if await self.repository.get_user_by_email(email) is not None:
            logger.warning("registration_email_conflict", email=mask_email(email))
            raise EmailAlreadyExistsError()
        if await self.repository.get_user_by_username(username) is not None:
            logger.warning("registration_username_conflict", email=mask_email(email))
            raise UsernameAlreadyExistsError()

        self.password_policy.validate(password)

        user = await self.repository.create_user(
            email=email, username=username, password_hash=hash_password(password)
        )
        pair = await self.token_service.issue_token_pair(user)
        await self._cache_refresh_token(user, pair)

        logger.info("user_registered", user_id=user.id, email=mask_email(email))
        return AuthResponse(
            user=UserSummary.from_entity(user),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        )

    # -- Login ----------------------------------------------------------------

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResponse:
        """Authenticate with email and password and open a session.

        Args:
            email: Login email.
            password: Plain text password.
            ip_address: Client address; rate limiting keys on it, ``"unknown"`` when absent.
            user_agent: Client user agent, stored on the session.

        Returns:
            AuthResponse: Tokens plus the id of the new session.

        Raises:
            TooManyAttemptsError: If the client address exhausted its login budget.
            InvalidCredentialsError: If the email is unknown or the password is wrong.
            AccountLockedError: If the account is locked out or deactivated.
        """
        email = normalize_email(email)
        client = ip_address or UNKNOWN_CLIENT

        rate = await self.rate_limiter.check(self.policies.login, client)
        if not rate.allowed:
            logger.warning("login_rate_limited", client=client, reset_time=rate.reset_time)
            raise TooManyAttemptsError(reset_time=rate.reset_time)

        user = await self.repository.get_user_by_email(email)
        if user is None:
            dummy_verify()
            logger.warning("login_failed", email=mask_email(email), reason="unknown_email")
            raise InvalidCredentialsError()

        try:
            lockout_until = await self.lockout.get_lockout_until(user.id)
        except CacheUnavailableError:
            logger.warning("lockout_check_fail_open", user_id=user.id, degraded=True)
            lockout_until = None
        if lockout_until is not None:
            logger.warning("login_rejected_account_locked", user_id=user.id)
            raise AccountLockedError(
                get_translated_message("account_temporarily_locked"),
                lockout_until=lockout_until,
            )

        if not verify_password(password, user.password_hash):
            try:
                status = await self.lockout.increment_failed_attempts(user.id)
            except CacheUnavailableError:
                logger.warning("failed_attempt_not_recorded", user_id=user.id, degraded=True)
                raise InvalidCredentialsError() from None
            logger.warning(
                "login_failed",
                user_id=user.id,
                reason="wrong_password",
                attempts=status.attempts,
                locked=status.is_locked,
            )
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("login_rejected_inactive_user", user_id=user.id)
            raise AccountLockedError()

        await self._best_effort("clear_failed_attempts", self.lockout.clear_failed_attempts(user.id))

        pair = await self.token_service.issue_token_pair(user)
        now = datetime.now(timezone.utc)
        session = await self.repository.create_session(
            user_id=user.id,
            token_hash=self.token_service.hash_token(pair.access_token),
            expires_at=now + timedelta(seconds=pair.expires_in),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await self._best_effort(
            "set_session",
            self.cache.set_session(
                session.id,
                SessionData(
                    user_id=user.id,
                    email=user.email,
                    username=user.username,
                    role=self.settings.SESSION_DEFAULT_ROLE,
                    permissions=[],
                    last_activity=now,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    created_at=now,
                ),
            ),
        )
        await self._cache_refresh_token(user, pair)

        logger.info("user_login_successful", user_id=user.id, session_id=session.id)
        return AuthResponse(
            user=UserSummary.from_entity(user),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            session_id=session.id,
        )

    # -- Tokens ---------------------------------------------------------------

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        """Redeem a refresh token for a new pair; each refresh token works once.

        Raises:
            TokenExpiredError: If the refresh token's ``exp`` passed.
            TokenInvalidError: If the token is malformed, not a refresh token,
                unknown, revoked or already redeemed.
            UserNotFoundError: If the owner no longer exists or is inactive.
        """
        payload = self.token_service.validate(refresh_token, TokenType.REFRESH)

        stored = await self.repository.find_refresh_token_by_hash(
            self.token_service.hash_token(refresh_token)
        )
        if stored is None or stored.user_id != payload.sub:
            logger.warning("refresh_token_not_found_or_revoked", user_id=payload.sub)
            raise TokenInvalidError(get_translated_message("refresh_token_not_found_or_revoked"))

        user = await self.repository.get_user_by_id(payload.sub)
        if user is None or not user.is_active:
            logger.warning("refresh_rejected_inactive_user", user_id=payload.sub)
            raise UserNotFoundError(get_translated_message("user_not_found_or_inactive"))

        pair = await self.token_service.rotate_token_pair(user, stored)
        await self._best_effort("revoke_refresh_token", self.cache.revoke_refresh_token(stored.id))
        await self._cache_refresh_token(user, pair)

        logger.info("token_refreshed", user_id=user.id)
        return pair

    async def logout(self, access_token: str, user_id: Optional[str] = None) -> None:
        """Revoke an access token immediately.

        Blacklists the token digest, removes its session row and cached
        snapshot, and when ``user_id`` is given drops every cached session of
        that user. Refresh tokens are left untouched.

        Raises:
            CacheUnavailableError: If the blacklist entry cannot be written;
                nothing else has changed at that point.
        """
        token_hash = self.token_service.hash_token(access_token)
        await self.cache.blacklist_token(token_hash)

        session = await self.repository.find_session_by_token_hash(token_hash)
        if session is not None:
            await self.repository.delete_session(session.id)
            await self._best_effort("delete_session", self.cache.delete_session(session.id))
            await self._best_effort(
                "remove_user_session",
                self.cache.remove_user_session(session.user_id, session.id),
            )

        if user_id is not None:
            await self._best_effort(
                "invalidate_user_sessions", self.cache.invalidate_user_sessions(user_id)
            )

        logger.info("user_logged_out", session_found=session is not None, user_id=user_id)

    async def validate_token(self, token: str) -> TokenPayload:
        """Verify an access token and reject it if it was logged out.

        Raises:
            TokenExpiredError: If ``exp`` passed.
            TokenInvalidError: If the token is malformed, not an access token, or blacklisted.
        """
        payload = self.token_service.validate(token, TokenType.ACCESS)
        if await self.cache.is_token_blacklisted(self.token_service.hash_token(token)):
            logger.warning("blacklisted_token_presented", user_id=payload.sub)
            raise TokenInvalidError(get_translated_message("token_revoked"))
        return payload

    # -- Password management --------------------------------------------------

    async def forgot_password(self, email: str) -> None:
        """Start a password reset; unknown emails succeed silently.

        Raises:
            TooManyRequestsError: If the email exhausted its reset budget.
        """
        email = normalize_email(email)
        user = await self.repository.get_user_by_email(email)
        if user is None or not user.is_active:
            logger.info("password_reset_requested_for_unknown_email", email=mask_email(email))
            return

        rate = await self.rate_limiter.check(self.policies.password_reset, email)
        if not rate.allowed:
            logger.warning("password_reset_rate_limited", user_id=user.id)
            raise TooManyRequestsError(reset_time=rate.reset_time)

        token = generate_secure_token()
        expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=self.settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
        )
        await self.repository.create_password_reset(
            user_id=user.id,
            token_hash=self.token_service.hash_token(token),
            expires_at=expires_at,
        )
        await self.email_dispatcher.send_password_reset(user, token, expires_at)
        logger.info("password_reset_requested", user_id=user.id)

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password with a reset token and revoke every refresh token.

        Raises:
            TokenInvalidError: If the token is unknown, expired or already used.
            PasswordPolicyError: If the new password is too weak.
        """
        record = await self.repository.find_password_reset_by_token_hash(
            self.token_service.hash_token(token)
        )
        if record is None:
            logger.warning("password_reset_token_rejected")
            raise TokenInvalidError(get_translated_message("invalid_or_expired_reset_token"))

        self.password_policy.validate(new_password)

        await self.repository.complete_password_reset(
            reset_id=record.id,
            user_id=record.user_id,
            password_hash=hash_password(new_password),
        )
        await self._best_effort(
            "clear_failed_attempts", self.lockout.clear_failed_attempts(record.user_id)
        )
        logger.info("password_reset_successful", user_id=record.user_id)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Change a password after re-checking the current one.

        Raises:
            UserNotFoundError: If the user does not exist or is inactive.
            InvalidCredentialsError: If ``current_password`` is wrong.
            PasswordPolicyError: If the new password is too weak.
        """
        user = await self.repository.get_user_by_id(user_id)
        if user is None or not user.is_active:
            raise UserNotFoundError()

        if not verify_password(current_password, user.password_hash):
            logger.warning("password_change_rejected", user_id=user_id)
            raise InvalidCredentialsError(get_translated_message("current_password_incorrect"))

        self.password_policy.validate(new_password)

        await self.repository.update_password(user.id, hash_password(new_password))
        await self._best_effort("clear_failed_attempts", self.lockout.clear_failed_attempts(user.id))
        logger.info("password_changed", user_id=user.id)

    # -- Email verification ---------------------------------------------------

    async def request_email_verification(self, user_id: str) -> None:
        """Create a single-use verification record for the user's current email and send it."""
        user = await self.repository.get_user_by_id(user_id)
        if user is None or not user.is_active:
            raise UserNotFoundError()

        token = generate_secure_token()
        expires_at = datetime.now(timezone.utc) + timedelta(
            hours=self.settings.EMAIL_VERIFICATION_TOKEN_EXPIRE_HOURS
        )
        await self.repository.create_email_verification(
            user_id=user.id,
            email=user.email,
            token_hash=self.token_service.hash_token(token),
            expires_at=expires_at,
        )
        await self.email_dispatcher.send_email_verification(user, user.email, token, expires_at)
        logger.info("email_verification_requested", user_id=user.id)

    async def verify_email(self, token: str) -> None:
        """Redeem an email verification token.

        Raises:
            TokenInvalidError: If the token is unknown, expired or already used.
        """
        record = await self.repository.find_email_verification_by_token_hash(
            self.token_service.hash_token(token)
        )
        if record is None or not await self.repository.mark_email_as_verified(record.id):
            logger.warning("email_verification_token_rejected")
            raise TokenInvalidError(get_translated_message("invalid_or_expired_verification_token"))
        logger.info("email_verified", user_id=record.user_id)

    # -- Administration -------------------------------------------------------

    async def deactivate_user(self, user_id: str) -> None:
        """Soft-deactivate an account, revoke its refresh tokens and clear cached auth state.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        user = await self.repository.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError()

        await self.repository.deactivate_user(user.id)
        await self._best_effort("invalidate_user_cache", self.cache.invalidate_user_cache(user.id))
        logger.info("user_deactivated", user_id=user.id)

    async def purge_expired_sessions(self) -> int:
        """Delete expired session rows; returns how many were removed."""
        removed = await self.repository.delete_expired_sessions()
        logger.info("expired_sessions_purged", count=removed)
        return removed

    async def _cache_refresh_token(self, user: User, pair: TokenPair) -> None:
        await self._best_effort(
            "set_refresh_token",
            self.cache.set_refresh_token(
                pair.refresh_token_id,
                RefreshTokenData(
                    user_id=user.id,
                    token_id=pair.refresh_token_id,
                    expires_at=pair.refresh_expires_at,
                    created_at=datetime.now(timezone.utc),
                ),
            ),
        )

    @staticmethod
    async def _best_effort(operation: str, write: Awaitable) -> None:
        """Await a cache write that must not fail the flow once the store has committed."""
        try:
            await write
        except CacheUnavailableError:
            logger.warning("cache_write_degraded", operation=operation, degraded=True)
