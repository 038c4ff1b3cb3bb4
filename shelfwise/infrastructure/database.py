"""Database Access - engine lifecycle, request sessions and the atomic unit of work.

Invariants:
    - A request session that raises is rolled back before it is closed
    - SQLAlchemy failures leaving a request session surface as DatabaseError
      (503); IntegrityError raised at flush inside an operation is a
      ConcurrencyError (409) instead
    - atomic(db) is the only place core operations commit: item, patron and
      ledger writes of one operation land together or not at all

Design Decisions:
    - db_manager is created by the FastAPI lifespan, never at import time
    - expire_on_commit=False: handlers read ORM attributes after commit
    - SQLite URLs (tests, local runs) skip the pool sizing arguments, which
      the SQLite dialect rejects
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from shelfwise.core.errors import ConcurrencyError, DatabaseError, ErrorContext

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError subclass DBAPIError.
_FAILURE_OPERATIONS: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "commit", "Integrity constraint violated"),
    (OperationalError, "execute", "Connection or operational error"),
    (DBAPIError, "query", "Database driver error"),
    (SQLAlchemyError, "unknown", "Database operation failed"),
)


def _as_database_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, operation, message in _FAILURE_OPERATIONS:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the engine and hands out request-scoped sessions."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_options: dict = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_options.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_options)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            error = _as_database_error(e)
            logger.error(f"{error.message}: {e}", extra={"error_code": error.code})
            raise error from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """True when a trivial query round-trips (readiness probe)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except (DatabaseError, OSError) as e:
            logger.error(f"DB health check failed: {e}")
            return False
        return True


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if db_manager is None:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back and re-raise otherwise."""
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise


async def flush_or_conflict(
    db: AsyncSession, message: str, context: ErrorContext | None = None,
) -> None:
    """Flush pending writes; a unique or partial-index violation means a concurrent writer won."""
    try:
        await db.flush()
    except IntegrityError as e:
        logger.warning(
            f"Integrity conflict on flush: {e.orig}",
            extra={
                "patron_barcode": context.patron_barcode if context else None,
                "item_barcode": context.item_barcode if context else None,
            },
        )
        raise ConcurrencyError(message, context) from e
