"""
RizzedIn — Database access.

One async engine per process, created lazily on first use:

- ``CLOUD_SQL_INSTANCE_CONNECTION`` set (and ``CLOUD_SQL_USE_UNIX_SOCKET``
  on): connections come from the Cloud SQL Python Connector with IAM auth.
  The connector is an optional extra (``pip install rizzedin[cloudsql]``).
- Otherwise ``DATABASE_URL`` is used as-is; a bare ``postgresql://`` scheme
  is upgraded to the asyncpg dialect.

Request handlers get a session from ``get_db`` which commits on success
and rolls back on error.  Scripts use ``session_scope`` for the same
contract outside FastAPI.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncGenerator, AsyncIterator

import structlog
from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings, get_settings

logger = structlog.get_logger(__name__)

# Constraint names line up with the hand-written Alembic revisions
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
}


class Base(DeclarativeBase):
    """Declarative base for every RizzedIn table."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _pool_options(settings: Settings) -> dict[str, Any]:
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": 30,
        "pool_recycle": settings.DB_POOL_RECYCLE_SECONDS,
        "pool_pre_ping": True,
        "echo": settings.LOG_LEVEL.upper() == "DEBUG",
    }


def _asyncpg_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def _connector_engine(settings: Settings) -> AsyncEngine:
    from google.cloud.sql.connector import Connector

    connector = Connector()

    async def connect():
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    return create_async_engine(
        "postgresql+asyncpg://", async_creator=connect, **_pool_options(settings)
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    settings = get_settings()

    if settings.CLOUD_SQL_USE_UNIX_SOCKET and settings.CLOUD_SQL_INSTANCE_CONNECTION:
        engine = _connector_engine(settings)
        logger.info(
            "database_engine_created",
            strategy="cloud_sql_connector",
            instance=settings.CLOUD_SQL_INSTANCE_CONNECTION,
        )
        return engine

    engine = create_async_engine(
        _asyncpg_url(settings.DATABASE_URL), **_pool_options(settings)
    )
    logger.info("database_engine_created", strategy="database_url")
    return engine


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after the mid-request commit in chat sends
    return async_sessionmaker(
        bind=get_engine(), class_=AsyncSession, expire_on_commit=False
    )


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Commit on clean exit, roll back on any exception."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping ``session_scope``."""
    async with session_scope() as session:
        yield session
