"""Database Session Manager — async engine, per-request sessions, tracing hooks, readiness ping.

Invariants:
    - A session that sees a SQLAlchemy error is rolled back before the error leaves it
    - Callers only ever see DatabaseError (503); driver text stays in the logs
    - pool_pre_ping on every engine, so connections dropped by the server are replaced
    - Manager is owned by one app (app.state.db_manager); get_db reads it from the request

Design Decisions:
    - expire_on_commit=False: ORM objects stay readable after commit in async code
    - Pool sizing skipped for SQLite, whose async driver uses a non-queue pool
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from opentelemetry.trace import Tracer
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from webtemplate.config import DatabaseSettings
from webtemplate.core.errors import DatabaseError
from webtemplate.infrastructure.db_tracing import instrument_engine

logger = logging.getLogger(__name__)

# Most specific first: (exception type, public message, operation).
_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def to_database_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the async engine and hands out sessions that roll back on failure."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 90,
        pool_recycle: int = 3600,
        connect_args: dict | None = None,
        tracer: Tracer | None = None,
    ):
        engine_options: dict = {"pool_pre_ping": True}
        if connect_args:
            engine_options["connect_args"] = connect_args
        if not database_url.startswith("sqlite"):
            engine_options.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=pool_recycle,
            )
        self.engine = create_async_engine(database_url, **engine_options)
        self.traced = instrument_engine(self.engine.sync_engine, tracer)
        self._sessions = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @classmethod
    def from_settings(
        cls, cfg: DatabaseSettings, tracer: Tracer | None = None,
    ) -> "DatabaseSessionManager":
        return cls(
            cfg.url,
            pool_size=cfg.pool_size,
            max_overflow=cfg.max_overflow,
            pool_recycle=cfg.conn_max_lifetime * 60,
            connect_args=cfg.connect_args,
            tracer=tracer,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        db = self._sessions()
        try:
            yield db
        except SQLAlchemyError as e:
            await db.rollback()
            error = to_database_error(e)
            logger.error(
                f"Database {error.operation} error ({type(e).__name__}): {e}",
                extra={"error_code": error.code},
            )
            raise error from e
        finally:
            await db.close()

    async def health_check(self) -> bool:
        """True when a trivial query round-trips."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except (DatabaseError, OSError) as e:
            logger.error(f"Database ping failed: {e}")
            return False
        return True

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session from the app's manager."""
    manager: DatabaseSessionManager | None = getattr(
        request.app.state, "db_manager", None,
    )
    if manager is None:
        raise DatabaseError("Database not initialized", "connect")
    async with manager.session() as db:
        yield db
