"""Dependency wiring for the authentication engine.

``AuthContainer`` owns the process-wide resources (the async engine, the
session factory and the Redis client) and builds every service on top of them
with constructor injection. Nothing below the container reaches for a global
connection; tests hand in an in-memory SQLite engine, a fake Redis client and a
controllable clock.

Usage::

    container = await AuthContainer.create()
    try:
        response = await container.auth_service.login(email, password, ip_address=ip)
    finally:
        await container.aclose()
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from structlog import get_logger

from src.core.config.settings import Settings, settings as default_settings
from src.core.initialization import initialize_application
from src.core.rate_limiting.config import RateLimitingConfig
from src.core.rate_limiting.fixed_window import FixedWindowRateLimiter
from src.domain.interfaces.email import IEmailDispatcher
from src.domain.services.auth.auth_service import AuthService
from src.domain.services.auth.lockout import LockoutTracker
from src.domain.services.auth.password_policy import PasswordPolicyValidator
from src.domain.services.auth.token import TokenService
from src.infrastructure.cache.auth_cache import AuthCacheService
from src.infrastructure.database.async_db import (
    check_database_health,
    create_async_db_engine,
    create_db_and_tables,
    create_session_factory,
)
from src.infrastructure.redis import CacheClient, create_redis_client
from src.infrastructure.repositories.credential_repository import CredentialRepository
from src.infrastructure.services.email_dispatcher import LoggingEmailDispatcher

logger = get_logger(__name__)


@dataclass
class AuthContainer:
    """Holds the shared resources and the services built on them.

    Attributes:
        settings: Configuration every component was built with.
        engine: Async SQLAlchemy engine.
        session_factory: Produces one ``AsyncSession`` per repository call.
        redis: Shared Redis client.
        cache_client: JSON wrapper around ``redis``.
        repository: Durable credential store.
        auth_cache: Session snapshots, refresh metadata and the blacklist.
        rate_limiter: Fixed-window limiter.
        lockout: Failed-login tracker.
        token_service: JWT signing and refresh-token persistence.
        password_policy: Password strength rules.
        email_dispatcher: Delivers reset and verification links.
        auth_service: The orchestrator callers use.
    """

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    redis: Redis
    cache_client: CacheClient
    repository: CredentialRepository
    auth_cache: AuthCacheService
    rate_limiter: FixedWindowRateLimiter
    lockout: LockoutTracker
    token_service: TokenService
    password_policy: PasswordPolicyValidator
    email_dispatcher: IEmailDispatcher
    auth_service: AuthService

    @classmethod
    async def create(
        cls,
        config: Optional[Settings] = None,
        redis: Optional[Redis] = None,
        engine: Optional[AsyncEngine] = None,
        email_dispatcher: Optional[IEmailDispatcher] = None,
        rate_limiting: Optional[RateLimitingConfig] = None,
        clock: Callable[[], float] = time.time,
        create_tables: bool = False,
    ) -> "AuthContainer":
        """Build the container.

        Args:
            config: Settings; defaults to the process singleton.
            redis: Pre-built Redis client; one is created from ``REDIS_URL`` otherwise.
            engine: Pre-built engine; one is created from ``DATABASE_URL`` otherwise.
            email_dispatcher: Dispatcher implementation; defaults to logging links.
            rate_limiting: Global rate limiting switches.
            clock: Time source in seconds for the rate limiter and lockout tracker.
            create_tables: Create the schema on the engine before returning.

        Returns:
            AuthContainer: Fully wired services.
        """
        config = config or default_settings
        initialize_application(config)

        engine = engine or create_async_db_engine(config=config)
        if create_tables:
            await create_db_and_tables(engine)
        session_factory = create_session_factory(engine)

        redis = redis or create_redis_client(config)
        cache_client = CacheClient(redis, service_name=config.PROJECT_NAME)

        repository = CredentialRepository(session_factory)
        auth_cache = AuthCacheService(cache_client, config)
        rate_limiter = FixedWindowRateLimiter(cache_client, clock=clock, config=rate_limiting)
        lockout = LockoutTracker(cache_client, config, clock=clock)
        token_service = TokenService(repository, config)
        password_policy = PasswordPolicyValidator(config)
        email_dispatcher = email_dispatcher or LoggingEmailDispatcher(config)

        auth_service = AuthService(
            repository=repository,
            token_service=token_service,
            cache=auth_cache,
            rate_limiter=rate_limiter,
            lockout=lockout,
            email_dispatcher=email_dispatcher,
            password_policy=password_policy,
            config=config,
        )
        logger.info("auth_container_created", environment=config.APP_ENV)
        return cls(
            settings=config,
            engine=engine,
            session_factory=session_factory,
            redis=redis,
            cache_client=cache_client,
            repository=repository,
            auth_cache=auth_cache,
            rate_limiter=rate_limiter,
            lockout=lockout,
            token_service=token_service,
            password_policy=password_policy,
            email_dispatcher=email_dispatcher,
            auth_service=auth_service,
        )

    async def health_check(self) -> Dict[str, bool]:
        """Report reachability of the database and the cache."""
        return {
            "database": await check_database_health(self.session_factory),
            "cache": await self.auth_cache.health_check(),
        }

    async def aclose(self) -> None:
        """Release the Redis connection pool and dispose the engine."""
        await self.redis.aclose()
        await self.engine.dispose()
        logger.info("auth_container_closed")
