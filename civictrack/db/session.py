"""
Engine and session lifecycle for the bill store.

One Database object owns one async engine. Sync runs, Prefect tasks and
the API each hold their own instance; the module-level ``db`` serves
the API.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker
)
from sqlalchemy.pool import NullPool, StaticPool
import logging

from ..config import settings

logger = logging.getLogger(__name__)


def _is_in_memory(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.endswith("://"))


class Database:
    """
    Owns the async engine and hands out sessions.

    Usage:
        database = Database("sqlite+aiosqlite:///:memory:")
        await database.initialize()
        await database.create_tables()

        async with database.session() as session:
            await BillRepository(session).get_by_id(1)

        await database.close()
    """

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = connection_string or settings.db.connection_string
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def initialized(self) -> bool:
        return self.session_factory is not None

    def _engine_options(self) -> Dict[str, Any]:
        """Pool arguments for the configured driver."""
        if _is_in_memory(self.connection_string):
            # Every session must see the same in-memory database
            logger.info("In-memory SQLite, sharing one connection")
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

        if self.connection_string.startswith("sqlite"):
            logger.info("File-backed SQLite, pooling disabled")
            return {"poolclass": NullPool}

        pool = settings.db
        logger.info(
            f"Pooled connections (size={pool.pool_size}, overflow={pool.max_overflow}, "
            f"recycle={pool.pool_recycle}s)"
        )
        return {
            "pool_size": pool.pool_size,
            "max_overflow": pool.max_overflow,
            "pool_timeout": pool.pool_timeout,
            "pool_recycle": pool.pool_recycle,
        }

    async def initialize(self) -> None:
        """Build the engine and session factory; repeated calls are ignored."""
        if self.initialized:
            logger.debug("Database.initialize called twice, ignoring")
            return

        dialect = self.connection_string.split("://")[0]
        logger.info(f"Connecting to {dialect} database")

        self.engine = create_async_engine(
            self.connection_string,
            echo=settings.db.echo,
            echo_pool=settings.db.echo_pool,
            **self._engine_options()
        )
        # Bill instances stay usable after commit; the sync service commits per record
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise RuntimeError("Database.initialize() has not been awaited")
        return self.engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session bound to this engine.

        Whatever is still pending when the block exits cleanly is committed.
        An exception rolls the session back and propagates.
        """
        self._require_engine()
        session = self.session_factory()

        try:
            yield session
            if session.in_transaction():
                await session.commit()
        except Exception as exc:
            logger.error(f"Rolling back session after {type(exc).__name__}: {exc}")
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Issue CREATE TABLE for every mapped model that is missing."""
        from .models import Base

        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(f"Schema ready ({len(Base.metadata.tables)} tables)")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database engine disposed")

        self.engine = None
        self.session_factory = None


db = Database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session from the global database."""
    async with db.session() as session:
        yield session
