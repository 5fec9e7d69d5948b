"""Database connection and session management

The engine and session factory live on a ``Database`` handle that the
application creates in its lifespan and stores on ``app.state.db``. Request
handlers receive sessions through the ``get_db`` dependency.
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from app.db.models import Base

logger = logging.getLogger(__name__)


def _create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # SQLite configuration for development and tests
        return create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    if ":6543/" in database_url or "pgbouncer=true" in database_url:
        # Managed Postgres behind a transaction-mode pooler
        # - NullPool: no local pooling, the pooler handles it
        # - statement_cache_size=0: asyncpg's named prepared statements
        #   collide across pooled connections
        return create_async_engine(
            database_url.replace("pgbouncer=true", "").rstrip("?&"),
            echo=echo,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args={
                "statement_cache_size": 0,
                "prepared_statement_name_func": lambda: "",
            },
        )
    # PostgreSQL, direct connection
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


class Database:
    """Process-lifetime handle to the relational store."""

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        self.engine = _create_engine(database_url, echo=echo)
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def session(self) -> AsyncSession:
        return self.session_maker()

    async def create_all(self) -> None:
        """Create tables that do not exist yet (development / tests)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        """Drop all tables (for testing)"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    db: Optional[Database] = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database handle not initialised; is the app lifespan running?")
    return db


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting database sessions"""
    async with get_database(request).session() as session:
        yield session
