"""
Database Initialization

Builds the async SQLAlchemy engine and session factory and creates the
registry payment tables (gift_items, gift_registry_configs, transactions,
idempotency_keys).

SQLite connections run in WAL mode and open every transaction with
BEGIN IMMEDIATE. SQLite has no SELECT ... FOR UPDATE, so taking the write
lock when the transaction starts is what serializes the row-locked
critical sections there.
"""
import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker

from ..config import settings
from .models import Base

logger = logging.getLogger(__name__)


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Install WAL pragmas and BEGIN IMMEDIATE on an aiosqlite engine."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from emitting its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=30000")  # 30 second timeout
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite URLs get the locking setup described in the module docstring.
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=False,
            connect_args={
                "timeout": 30,  # 30 second timeout for lock acquisition
                "check_same_thread": False
            },
            pool_pre_ping=True,
        )
        _configure_sqlite(engine)
        return engine

    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=3600  # Recycle connections after 1 hour
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables and indexes declared on Base.metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def initialize_database() -> None:
    """
    Initialize the database with all required tables.

    Called during FastAPI startup.
    """
    logger.info(f"Initializing database at: {settings.resolved_database_url}")
    await create_tables(engine)
    logger.info("Database initialized successfully")


# ============================================================================
# Process-wide engine and session factory
# ============================================================================

engine = build_engine(settings.resolved_database_url)
AsyncSessionLocal = build_session_factory(engine)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions in FastAPI.

    Usage:
        @router.post("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


# Alias for FastAPI Depends
get_db = get_async_session
