"""
Database connection setup using async SQLAlchemy.

Provides the async engine, session factory, and a dependency
for injecting database sessions into FastAPI route handlers.

PostgreSQL (asyncpg) is the production backend.  SQLite (aiosqlite) is
accepted for local development and tests; every SQLite transaction is
opened with ``BEGIN IMMEDIATE`` so writers are serialized the way row
locks serialize them on PostgreSQL.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from hawala.config import settings


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Take over transaction control from pysqlite so BEGIN IMMEDIATE and SAVEPOINT work."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False, pool_size: int | None = None) -> AsyncEngine:
    """Create an async engine for *url*, applying backend-specific setup."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo, connect_args={"timeout": 30})
        _install_sqlite_hooks(engine)
        return engine
    return create_async_engine(
        url,
        pool_size=pool_size or settings.DATABASE_POOL_SIZE,
        echo=echo,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db() -> AsyncSession:
    """FastAPI dependency that yields a database session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
