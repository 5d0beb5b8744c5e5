"""
Database Connection Module
Handles the database connection using the SQLAlchemy async engine.

PostgreSQL (psycopg) is the deployment target. SQLite (aiosqlite) is
supported for local runs and the test-suite; the trigonometric functions
used by the driver proximity query are registered on each SQLite
connection because SQLite does not ship them in every build.
"""

import logging
import math
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from delivery_app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _nullable(fn):
    def wrapper(value):
        if value is None:
            return None
        return fn(value)
    return wrapper


def _clamped_asin(value: float) -> float:
    return math.asin(max(-1.0, min(1.0, value)))


SQLITE_FUNCTIONS = {
    "sin": math.sin,
    "cos": math.cos,
    "asin": _clamped_asin,
    "sqrt": math.sqrt,
    "radians": math.radians,
}


def _least(*values):
    if any(value is None for value in values):
        return None
    return min(values)


def _register_sqlite_functions(dbapi_connection, connection_record) -> None:
    for name, fn in SQLITE_FUNCTIONS.items():
        dbapi_connection.create_function(name, 1, _nullable(fn))
    dbapi_connection.create_function("least", -1, _least)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    Pool sizing only applies to server databases; SQLite connections
    get the math functions needed by the proximity predicate.
    """
    if database_url.startswith("sqlite"):
        new_engine = create_async_engine(database_url, echo=echo)
        event.listen(new_engine.sync_engine, "connect", _register_sqlite_functions)
        return new_engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
    )


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False  # Objects remain accessible after commit
    )


engine = build_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = build_session_maker(engine)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # Models must be imported so their tables are registered on Base.metadata
    from delivery_app import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")
