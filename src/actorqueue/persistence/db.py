"""
Database connection and session management.

Provides an async engine and session lifecycle for the result store.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

import orjson
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base


DEFAULT_DATABASE_URL = "sqlite:///data/actorqueue.db"


def json_serializer(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def json_deserializer(s: str | bytes) -> Any:
    return orjson.loads(s)


# =============================================================================
# URL Handling
# =============================================================================


def _get_async_url(url: str) -> str:
    """Convert sync database URL to async variant.

    SQLite: sqlite:/// -> sqlite+aiosqlite:///
    PostgreSQL: postgresql:// -> postgresql+asyncpg://
    """
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    elif url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    elif url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://")
    return url


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if url.startswith(prefix):
            db_path = url[len(prefix):]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            return


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Enable WAL mode and a sane sync level for SQLite."""
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


# =============================================================================
# Database
# =============================================================================


class Database:
    """Async engine plus session factory for one database URL."""

    def __init__(
        self,
        url: str = DEFAULT_DATABASE_URL,
        echo: bool = False,
        pool_size: int = 5,
    ) -> None:
        """Initialize the database handle. The engine is created lazily.

        Args:
            url: SQLAlchemy database URL (converted to its async variant)
            echo: Whether to log SQL statements
            pool_size: Connection pool size (ignored for SQLite)
        """
        self.url = _get_async_url(url)
        self.echo = echo
        self.pool_size = pool_size
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the async engine."""
        if self._engine is not None:
            return self._engine

        _ensure_sqlite_dir(self.url)

        if self.url.startswith("sqlite"):
            self._engine = create_async_engine(
                self.url,
                echo=self.echo,
                json_serializer=json_serializer,
                json_deserializer=json_deserializer,
            )
            _configure_sqlite(self._engine)
        else:
            self._engine = create_async_engine(
                self.url,
                echo=self.echo,
                pool_size=self.pool_size,
                max_overflow=10,
                pool_pre_ping=True,
                json_serializer=json_serializer,
                json_deserializer=json_deserializer,
            )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an asynchronous database session.

        Usage:
            async with db.session() as session:
                await session.execute(...)

        Commits on success, rolls back on error.
        """
        if self._session_factory is None:
            _ = self.engine

        assert self._session_factory is not None
        session = self._session_factory()

        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def init(self) -> None:
        """Create all tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Dispose of the engine. Call on shutdown."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
