"""
DuoMatch — Async Database Engine & Session Factory

Provides two connection strategies:

1. **Cloud Run (production)** – Uses ``cloud-sql-python-connector`` with
   automatic IAM authentication over a Unix domain socket.  Activated when
   ``CLOUD_SQL_USE_UNIX_SOCKET`` is *True* **and** a valid
   ``CLOUD_SQL_INSTANCE_CONNECTION`` is provided.

2. **Local development / tests** – Falls back to the plain ``DATABASE_URL``
   string (``asyncpg`` for PostgreSQL, ``aiosqlite`` for SQLite).

The engine is built lazily so that importing models or services never opens a
connection; the FastAPI lifespan (or a test fixture) decides when to build it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from duomatch.config import get_settings
from duomatch.errors import Unavailable

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Declarative base for all ORM models
# ------------------------------------------------------------------ #

class Base(DeclarativeBase):
    """Shared declarative base.

    Every SQLAlchemy model in the project should inherit from this class::

        from duomatch.database import Base

        class Duo(Base):
            __tablename__ = "duos"
            ...
    """
    pass


# ------------------------------------------------------------------ #
# Pool configuration (PostgreSQL only; SQLite uses its default pool)
# ------------------------------------------------------------------ #

_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


# ------------------------------------------------------------------ #
# Engine construction helpers
# ------------------------------------------------------------------ #

def _build_cloud_sql_engine() -> AsyncEngine:
    """Create an async engine that connects through the Cloud SQL Python
    Connector with automatic IAM authentication.

    The connector manages the SSL tunnel / Unix socket transparently so
    the application only needs the *instance connection name*
    (``project:region:instance``).
    """
    from google.cloud.sql.connector import Connector

    settings = get_settings()

    connector = Connector()

    async def _get_connection():
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    engine = create_async_engine(
        "postgresql+asyncpg://",
        async_creator=_get_connection,
        echo=(settings.LOG_LEVEL == "DEBUG"),
        **_POOL_KWARGS,
    )

    logger.info(
        "Database engine created via Cloud SQL Connector (%s)",
        settings.CLOUD_SQL_INSTANCE_CONNECTION,
    )
    return engine


def build_engine(url: str | None = None, echo: bool = False) -> AsyncEngine:
    """Create an async engine from a URL (defaults to ``DATABASE_URL``).

    A plain ``postgresql://`` scheme is upgraded to ``postgresql+asyncpg://``
    and ``sqlite://`` to ``sqlite+aiosqlite://``.
    """
    url = url or get_settings().DATABASE_URL

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("postgresql"):
        kwargs.update(_POOL_KWARGS)
    else:
        # SQLite waits on the file lock instead of failing fast.
        kwargs["connect_args"] = {"timeout": 30}

    engine = create_async_engine(url, **kwargs)
    logger.info("Database engine created (%s)", engine.dialect.name)
    return engine


def _create_engine() -> AsyncEngine:
    """Select the appropriate engine builder based on configuration."""
    settings = get_settings()

    use_cloud_sql = (
        settings.CLOUD_SQL_USE_UNIX_SOCKET
        and settings.CLOUD_SQL_INSTANCE_CONNECTION
    )

    if use_cloud_sql:
        return _build_cloud_sql_engine()

    return build_engine(echo=(settings.LOG_LEVEL == "DEBUG"))


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ------------------------------------------------------------------ #
# Process-wide engine (lazy-initialised)
# ------------------------------------------------------------------ #

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


async def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


# ------------------------------------------------------------------ #
# Store helpers shared by the services
# ------------------------------------------------------------------ #

def dialect_insert(session: AsyncSession, table: Table):
    """Return an ``INSERT`` construct that supports ``ON CONFLICT`` clauses
    for the dialect the session is bound to."""
    dialect_name = session.bind.dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(table)
    if dialect_name == "sqlite":
        return sqlite.insert(table)
    raise RuntimeError(f"Unsupported database dialect: {dialect_name}")


@asynccontextmanager
async def store_errors(operation: str) -> AsyncIterator[None]:
    """Translate connectivity failures and timeouts into ``Unavailable``."""
    try:
        yield
    except (OperationalError, InterfaceError, asyncio.TimeoutError, OSError) as exc:
        logger.warning("Store unavailable during %s: %s", operation, exc)
        raise Unavailable(f"Store unavailable during {operation}.") from exc


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
