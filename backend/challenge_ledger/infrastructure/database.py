"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - SQLAlchemy exceptions mapped to PersistenceError (core/errors.py);
      LedgerError raised inside a session passes through unchanged
    - SQLite transactions start with BEGIN IMMEDIATE: writers serialize at the
      database level because SQLite has no row locks

Design Decisions:
    - Singleton db_manager initialized by bootstrap.init_ledger (no import side effects)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - apply_transaction_timeouts sets per-transaction lock/statement timeouts on
      PostgreSQL so a stuck FOR UPDATE cannot outlive the unit-of-work deadline
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)

from challenge_ledger.core.errors import PersistenceError

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def build_engine(
    database_url: str, pool_size: int = 20, max_overflow: int = 10,
) -> AsyncEngine:
    """Create the async engine; SQLite gets immediate transactions and FK enforcement."""
    if not is_sqlite(database_url):
        return create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    engine = create_async_engine(
        database_url,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Driver must not emit its own BEGIN; _on_begin does it
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def is_unique_violation(
    exc: IntegrityError, constraint: str, table: str, columns: tuple[str, ...],
) -> bool:
    """True if exc is a unique violation of the named constraint.

    PostgreSQL reports the constraint name; SQLite reports "table.column" pairs.
    """
    message = str(exc.orig)
    if constraint in message:
        return True
    sqlite_columns = ", ".join(f"{table}.{c}" for c in columns)
    return f"UNIQUE constraint failed: {sqlite_columns}" in message


async def apply_transaction_timeouts(db: AsyncSession, lock_timeout_ms: int) -> None:
    """Bound lock waits and statements for the current transaction (PostgreSQL only)."""
    bind = db.get_bind()
    if bind.dialect.name != "postgresql":
        return
    await db.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))
    await db.execute(text(f"SET LOCAL statement_timeout = {int(lock_timeout_ms) * 2}"))


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = build_engine(database_url, pool_size, max_overflow)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise PersistenceError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise PersistenceError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise PersistenceError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise PersistenceError("Database operation failed", "unknown")
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


def get_db_manager() -> DatabaseSessionManager:
    if not db_manager:
        raise RuntimeError("Database not initialized")
    return db_manager
