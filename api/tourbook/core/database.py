"""Async database engine and session management.

Booking writes rely on the database for isolation, never on in-process locks:
PostgreSQL row locks (SELECT ... FOR UPDATE) serialize writers per listing and
per booking. SQLite, used for tests and local runs, has no row locks, so every
transaction there is opened with BEGIN IMMEDIATE, which serializes writers for
the whole file.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tourbook.core.config import settings


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


def _use_immediate_transactions(async_engine: AsyncEngine) -> None:
    """Take over pysqlite's transaction handling and begin every transaction IMMEDIATE."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_options(settings.database_url),
)

if engine.dialect.name == "sqlite":
    _use_immediate_transactions(engine)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
