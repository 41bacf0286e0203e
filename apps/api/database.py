"""
Database engine, session factory and declarative base.
"""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import settings


Base = declarative_base()


def ensure_database_directory(url: str) -> None:
    """Create the parent folder of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def configure_sqlite_engine(async_engine: AsyncEngine) -> AsyncEngine:
    """
    Take over transaction control from the sqlite3 driver.

    Every SQLAlchemy transaction opens with BEGIN IMMEDIATE so a ledger
    unit of work holds the write lock from its first statement to COMMIT.
    """
    if async_engine.dialect.name != "sqlite":
        return async_engine

    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable the driver's implicit BEGIN; the "begin" hook emits our own.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return async_engine


def build_engine(url: str) -> AsyncEngine:
    connect_args = {}
    if make_url(url).get_backend_name() == "sqlite":
        connect_args["timeout"] = float(settings.SQLITE_BUSY_TIMEOUT_SECONDS)
    return configure_sqlite_engine(create_async_engine(url, connect_args=connect_args))


engine = build_engine(settings.DATABASE_URL)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency yielding one session per request."""
    async with async_session_maker() as session:
        yield session
