"""
Database session management for SQLAlchemy with async support

The API initializes the session manager in its lifespan hook, the Celery
worker on process init. Scripts fall back to lazy initialization from the
configured database URL.
"""
import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from packages.common.config import get_settings

logger = structlog.get_logger()


def to_async_url(database_url: str) -> str:
    """Switch a plain postgresql:// URL to the asyncpg driver"""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class DatabaseSessionManager:
    """Owns the async engine and hands out transactional sessions"""

    def __init__(self):
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._sessionmaker is not None

    async def init(self, database_url: str, **engine_kwargs) -> None:
        """Create engine and session factory once per process"""
        if self.initialized:
            return

        async with self._init_lock:
            if self.initialized:
                return

            options = {
                "echo": False,
                "pool_size": 10,
                "max_overflow": 10,
                "pool_pre_ping": True,
                "pool_recycle": 3600,
            }
            options.update(engine_kwargs)

            self._engine = create_async_engine(to_async_url(database_url), **options)
            self._sessionmaker = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.info("database_initialized", pool_size=options["pool_size"])

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("database_closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional session: commits on success, rolls back and re-raises
        on any error so partial receipt writes never land.
        """
        if not self.initialized:
            raise RuntimeError("DatabaseSessionManager not initialized")

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# Global session manager instance
sessionmanager = DatabaseSessionManager()


async def _ensure_initialized() -> None:
    """Lazy init for scripts; disable with DB_LAZY_INIT=0"""
    if sessionmanager.initialized:
        return

    if os.getenv("DB_LAZY_INIT", "1") not in {"1", "true", "True"}:
        raise RuntimeError(
            "Database lazy init disabled and session manager not initialized. "
            "Call sessionmanager.init(settings.database_url) explicitly in startup."
        )

    database_url = os.getenv("DATABASE_URL") or get_settings().database_url
    echo = os.getenv("SQL_ECHO", "0") in {"1", "true", "True"}
    await sessionmanager.init(database_url, echo=echo)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency (also usable from scripts via `async for`)"""
    await _ensure_initialized()
    async with sessionmanager.session() as session:
        yield session
