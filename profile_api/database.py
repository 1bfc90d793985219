"""
Async SQLAlchemy store handle for TiDB (MySQL-protocol).

TiDB is wire-compatible with MySQL 5.7, so production uses the aiomysql
driver; tests point the same class at an in-memory aiosqlite database.
One Database is opened in the app lifespan, kept on app.state and handed
to every request through the get_db dependency.
"""
import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from profile_api.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and session factory for one store."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or settings.sqlalchemy_url
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def _create_engine(self) -> AsyncEngine:
        if self.is_sqlite:
            if ":memory:" in self.url:
                # A single shared connection keeps ":memory:" alive across sessions
                engine = create_async_engine(
                    self.url,
                    echo=self._echo,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                engine = create_async_engine(self.url, echo=self._echo)
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            return engine
        return create_async_engine(
            self.url,
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=self._echo,
        )

    async def connect(self) -> None:
        """Create the engine and all tables if they don't exist (idempotent)."""
        # Register mapped classes on Base.metadata before create_all
        import profile_api.models  # noqa: F401

        self._engine = self._create_engine()
        self._sessionmaker = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connections closed")
        self._engine = None
        self._sessionmaker = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not connected — call connect() at startup")
        return self._engine

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("Database not connected — call connect() at startup")
        return self._sessionmaker()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async DB session."""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
