"""
Database session configuration.

This module owns the persistence gateway: an explicitly constructed
``Database`` that holds the async engine and its connection pool, runs
units of work inside a single transaction and retries transient store
failures. One instance is created at start-up and disposed at shutdown.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Tuple, Type, TypeVar

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from logiflow.app.core.config import Settings
from logiflow.app.core.exceptions import AppException, PersistenceError, StoreTimeoutError
from logiflow.app.core.reliability import CircuitBreaker, backoff, is_transient

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()

T = TypeVar("T")
UnitOfWork = Callable[[AsyncSession], Awaitable[T]]


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    Foreign keys on, and every transaction opened with BEGIN IMMEDIATE so
    concurrent writers queue on the busy timeout instead of deadlocking.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine with pool and timeout settings for the dialect."""
    if settings.database_url.startswith("sqlite"):
        engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
            connect_args={"timeout": settings.db_statement_timeout},
        )
        _enable_sqlite_transactions(engine)
        return engine

    connect_args = {}
    if "asyncpg" in settings.database_url:
        connect_args["command_timeout"] = settings.db_statement_timeout

    return create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def _is_store_failure(exc: BaseException) -> bool:
    # rejected input means the store answered
    if isinstance(exc, (IntegrityError, DataError)):
        return False
    return isinstance(exc, (SQLAlchemyError, OSError, asyncio.TimeoutError))


class Database:
    """
    Persistence gateway.

    Usage:
        database = Database(settings)
        await database.connect()
        booking = await database.run_in_transaction(lambda session: ...)
        await database.dispose()
    """

    def __init__(self, settings: Settings, engine: AsyncEngine = None):
        self.settings = settings
        self.engine = engine or build_engine(settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self.breaker = CircuitBreaker(
            failure_threshold=settings.db_breaker_failure_threshold,
            reset_timeout=settings.db_breaker_reset_timeout,
            counts_as_failure=_is_store_failure,
        )

    async def connect(self, create_tables: bool = None) -> None:
        """Verify connectivity and optionally create the schema."""
        if create_tables is None:
            create_tables = self.settings.db_create_tables
        async with self.engine.begin() as conn:
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
            else:
                await conn.execute(text("SELECT 1"))
        logger.info("Database ready (%s)", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Plain session outside the retry and breaker machinery."""
        async with self.session_factory() as session:
            yield session

    async def run_in_transaction(
        self,
        work: UnitOfWork,
        retry_on: Tuple[Type[BaseException], ...] = (),
        retry_on_attempts: int = 1,
    ) -> Any:
        """
        Run ``work(session)`` inside one transaction.

        The transaction commits when ``work`` returns and rolls back on any
        exception. Transient store errors are retried with a fresh session up
        to ``db_retry_attempts`` times. ``retry_on`` types (e.g. a unique-key
        collision) have their own budget of ``retry_on_attempts``. A unit of
        work that hits the statement timeout is never retried.
        ``AppException``s raised by ``work`` propagate untouched; store
        failures surface as ``PersistenceError``.
        """
        name = getattr(work, "__name__", "unit_of_work")
        budgets = {
            "transient": max(1, self.settings.db_retry_attempts),
            "retry_on": max(1, retry_on_attempts),
        }
        failures = {"transient": 0, "retry_on": 0}

        while True:
            try:
                return await self.breaker.call(self._run_once, work)
            except AppException:
                raise
            except Exception as exc:
                if retry_on and isinstance(exc, retry_on):
                    kind = "retry_on"
                elif is_transient(exc):
                    kind = "transient"
                else:
                    raise self._translate(exc, name) from exc

                failures[kind] += 1
                attempt, attempts = failures[kind], budgets[kind]
                if attempt >= attempts:
                    raise self._translate(exc, name) from exc
                logger.warning(
                    "Retrying %s after %s (attempt %d/%d)",
                    name, type(exc).__name__, attempt, attempts,
                )
                await backoff(attempt, self.settings.db_retry_backoff_seconds)

    async def _run_once(self, work: UnitOfWork) -> Any:
        started = time.monotonic()
        async with self.session_factory() as session:
            async with session.begin():
                result = await asyncio.wait_for(
                    work(session), timeout=self.settings.db_statement_timeout
                )
        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms > self.settings.db_slow_query_ms:
            logger.warning("Slow unit of work %s (%.0fms)", getattr(work, "__name__", "?"), elapsed_ms)
        return result

    def _translate(self, exc: BaseException, name: str) -> PersistenceError:
        if isinstance(exc, asyncio.TimeoutError):
            logger.error("Unit of work %s timed out", name)
            return StoreTimeoutError(self.settings.db_statement_timeout)
        if isinstance(exc, PoolTimeoutError):
            logger.error("No pooled connection for %s", name)
            return StoreTimeoutError(self.settings.db_pool_timeout)
        logger.error("Transaction %s failed and rolled back: %s", name, exc)
        return PersistenceError(
            message="Database operation failed",
            details={"operation": name, "reason": type(exc).__name__},
        )


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the gateway created at start-up."""
    return request.app.state.database

