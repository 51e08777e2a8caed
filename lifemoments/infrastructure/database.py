"""Database Session Manager — async SQLite engine with automatic rollback and error mapping.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - All SQLAlchemy/driver exceptions leave as StorageError with a kind
    - "database or disk is full" (and ENOSPC/EDQUOT) -> StorageErrorKind.QUOTA_EXCEEDED
    - "malformed" / "not a database" -> StorageErrorKind.CORRUPTION
    - One manager per database URL; dispose() releases the engine's connections

Design Decisions:
    - Explicit handle owned by the service, no module-level singleton: several
      isolated managers (one per test) can coexist
    - WAL journal + busy timeout on connect: readers never block the single writer
    - expire_on_commit=False: rows stay readable after commit in async context
"""

import errno
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from lifemoments.core.errors import LifeMomentsError, StorageError, StorageErrorKind
from lifemoments.db.base import Base
import lifemoments.models  # noqa: F401

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("database or disk is full", "disk quota exceeded", "no space left")
_CORRUPTION_MARKERS = (
    "malformed", "not a database", "file is encrypted", "database corrupt",
)
_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


def classify_storage_error(exc: BaseException) -> StorageErrorKind:
    """Map a driver/OS exception to the storage error kind the UI can act on."""
    if isinstance(exc, OSError) and exc.errno in _QUOTA_ERRNOS:
        return StorageErrorKind.QUOTA_EXCEEDED
    message = str(getattr(exc, "orig", None) or exc).lower()
    if any(marker in message for marker in _QUOTA_MARKERS):
        return StorageErrorKind.QUOTA_EXCEEDED
    if any(marker in message for marker in _CORRUPTION_MARKERS):
        return StorageErrorKind.CORRUPTION
    if isinstance(exc, IntegrityError):
        return StorageErrorKind.CONFLICT
    return StorageErrorKind.IO


def to_storage_error(exc: BaseException, operation: str) -> StorageError:
    kind = classify_storage_error(exc)
    return StorageError(
        type(exc).__name__, operation, kind=kind, cause=exc,
    )


class DatabaseSessionManager:
    """Manages async SQLite sessions with rollback, error mapping and schema setup."""

    def __init__(
        self, database_url: str, echo: bool = False, busy_timeout_seconds: float = 15.0,
    ):
        self.database_url = database_url
        self.engine: AsyncEngine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": busy_timeout_seconds},
        )
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _configure_sqlite)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_schema(self) -> None:
        """Create missing tables and indexes."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Schema creation failed: {e}")
            raise to_storage_error(e, "init") from e

    @asynccontextmanager
    async def session(self, operation: str = "query") -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except LifeMomentsError:
            await session.rollback()
            raise
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}", extra={"operation": operation})
            raise to_storage_error(e, operation) from e
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}", extra={"operation": operation})
            raise to_storage_error(e, operation) from e
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}", extra={"operation": operation})
            raise to_storage_error(e, operation) from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}", extra={"operation": operation})
            raise to_storage_error(e, operation) from e
        except OSError as e:
            await session.rollback()
            logger.error(f"Storage OS error: {e}", extra={"operation": operation})
            raise to_storage_error(e, operation) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            async with self.session("health") as db:
                await db.execute(text("SELECT 1"))
            return True
        except StorageError as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def _configure_sqlite(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()
