from __future__ import annotations

"""
Asynchronous Database Utilities Module

This module builds the asynchronous SQLAlchemy engine and session factory used by
the credential repository, creates the schema from SQLModel metadata and offers a
retried connectivity probe.

Production deployments use PostgreSQL through asyncpg; test suites point
``DATABASE_URL`` at ``sqlite+aiosqlite`` and get a single shared in-memory
connection.

**Security Note**: Ensure that the database connection URL (DATABASE_URL) is
configured for SSL/TLS when connecting over untrusted networks. Avoid logging
connection details; the URL embeds the password.

Key Components:
    - create_async_db_engine: Build the process-wide AsyncEngine.
    - create_session_factory: Build an ``async_sessionmaker`` bound to an engine.
    - create_db_and_tables: Create all SQLModel tables.
    - check_database_health: ``SELECT 1`` with tenacity retries.
"""

import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from structlog import get_logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

import src.domain.entities  # noqa: F401 - registers tables on SQLModel.metadata
from src.core.config.settings import Settings, settings as default_settings

logger = get_logger(__name__)


def create_async_db_engine(
    database_url: Optional[str] = None, config: Optional[Settings] = None
) -> AsyncEngine:
    """
    Create the asynchronous engine for the configured database.

    In-memory SQLite URLs get a ``StaticPool`` so the database survives across
    sessions. File-backed SQLite gets one connection per session and waits on
    locks, so concurrent writers serialize. Every other backend gets the pool
    sizing from settings.

    Args:
        database_url: Overrides ``settings.DATABASE_URL`` when given.
        config: Settings to read pool sizing from.

    Returns:
        AsyncEngine: The engine; dispose it with ``await engine.dispose()``.
    """
    config = config or default_settings
    url = database_url or config.DATABASE_URL

    if url.startswith("sqlite") and ":memory:" in url:
        engine = create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    elif url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False, connect_args={"timeout": 15})
    else:
        engine = create_async_engine(
            url,
            echo=False,
            pool_size=config.POSTGRES_POOL_SIZE,
            max_overflow=config.POSTGRES_MAX_OVERFLOW,
            pool_timeout=config.POSTGRES_POOL_TIMEOUT,
            pool_pre_ping=True,  # Check connection health before use
        )
    logger.debug("async_database_engine_created", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_db_and_tables(engine: AsyncEngine) -> None:
    """
    Create all tables registered on SQLModel metadata.

    Schema migrations are managed outside this package; this helper exists for
    test suites and first-run bootstrapping.
    """
    start_time = time.time()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info(
        "database_tables_created",
        execution_time=time.time() - start_time,
        tables=list(SQLModel.metadata.tables.keys()),
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)
async def _select_one(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))


async def check_database_health(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    """
    Performs a health check on the database connection.

    Transient ``OperationalError`` failures are retried with exponential backoff
    before the database is reported unhealthy.

    Returns:
        bool: True if database is healthy and responsive, False otherwise.
    """
    start_time = time.time()
    try:
        await _select_one(session_factory)
    except SQLAlchemyError as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            execution_time=time.time() - start_time,
        )
        return False
    logger.info("database_health_check_success", execution_time=time.time() - start_time)
    return True
