"""
SQLAlchemy async engine and session management

Database is built once by the DI container (constructed at process start,
disposed at shutdown). Any SQLAlchemy async URL works:
- production: postgresql+asyncpg://...
- tests: sqlite+aiosqlite:///<tmp file>
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger


class Base(DeclarativeBase):
    pass


class Database:
    """
    Owns the async engine and session factory.

    The engine is created lazily so that constructing the container never
    touches the network.
    """

    def __init__(self, *, url: Optional[str] = None, echo: Optional[bool] = None) -> None:
        self._url = url or settings.DATABASE_URL_ASYNC
        self._echo = settings.DB_ECHO if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self._url, echo=self._echo, future=True)
            self._session_maker = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            Logger.base.info(f'🔗 [DB] Engine created for {self._engine.url.render_as_string()}')
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for database sessions

        Note: Automatically handles rollback on exception
        """
        _ = self.engine
        assert self._session_maker is not None
        async with self._session_maker() as session:
            yield session

    async def create_tables(self) -> None:
        """Create database tables if they don't exist"""
        # Import models so they register on Base.metadata
        from src.service.reservation.driven_adapter import model  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        Logger.base.info('🗄️  [DB] Tables ensured')

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text('SELECT 1'))

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None
            Logger.base.info('🗄️  [DB] Engine disposed')


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Drivers without timezone support (SQLite) hand back naive UTC datetimes."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
