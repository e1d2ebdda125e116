"""
Database Connection Module
Handles the relational store using the SQLAlchemy async engine.

The engine lives inside a ``Database`` object that is opened in the
application lifespan and disposed at shutdown; routes receive sessions
through the ``get_db`` dependency.
"""

import logging
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from food_ordering.core.config import Settings

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the async engine and the session factory."""

    def __init__(self, settings: Settings):
        engine_options = {"echo": settings.database_echo}
        if not settings.is_sqlite:
            engine_options.update(
                pool_size=settings.database_pool_size,  # Connection pool size
                max_overflow=settings.database_max_overflow,  # Extra connections when pool is full
                pool_pre_ping=True,
            )

        self.engine: AsyncEngine = create_async_engine(settings.database_url, **engine_options)

        # SQLite ignores FK constraints unless asked per connection
        if settings.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Objects remain accessible after commit
        )

    async def create_all(self) -> None:
        """
        Create all tables in database.
        Called once at application startup.
        """
        # Import models so they register with Base.metadata
        from food_ordering import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    database: Database = request.app.state.database
    async with database.session_maker() as session:
        try:
            yield session
        finally:
            await session.close()
