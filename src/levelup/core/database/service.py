"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for LevelUp.
Provides atomic transactions, row locking and health checks for every store.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine with connection pooling
- Provide async context managers for sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Configure PostgreSQL statement timeouts per transaction
- Create the schema for tests and local development (`create_all`)

Non-Responsibilities
--------------------
- Translating driver errors into domain errors (stores do that)
- Retrying failed transactions (callers decide; awards are never auto-retried)
- Migrations

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the interface for all state mutations
- Never call `session.commit()` inside store code
- Unique-constraint violations roll back quietly; stores rely on them for
  race-safe inserts and handle `IntegrityError` themselves

**Connection Pooling**:
- AsyncAdaptedQueuePool for servers
- NullPool in testing (one connection per session, no reuse)
- StaticPool for in-memory SQLite so every session shares one database

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
...     stats = await session.get(LearnerStatsRow, row_id, with_for_update=True)
...     stats.current_level = 3
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool, StaticPool

from levelup.core.config.config import Config
from levelup.core.database.base import Base
from levelup.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the database settings used to build the engine."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory_sqlite(self) -> bool:
        return self.is_sqlite and (":memory:" in self.url or self.url.endswith("://"))

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize(url=None) / shutdown()
    - get_session() -> session without automatic commit
    - get_transaction() -> atomic write transaction (preferred)
    - health_check() -> fast reachability check
    - create_all() / drop_all() -> schema helpers for tests and local runs
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        if database_url.startswith("sqlite") and (
            ":memory:" in database_url or database_url.endswith("://")
        ):
            pool_class: Type[Pool] = StaticPool
        elif Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = AsyncAdaptedQueuePool

        return _DatabaseConfigSnapshot(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory (idempotent).

        Args:
            url: Optional override of `Config.DATABASE_URL` (tests pass a
                SQLite URL here).

        Raises:
            DatabaseInitializationError: If configuration is invalid or
                engine creation fails.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                config = cls._build_config_snapshot(url)
                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )
                if config.is_sqlite:
                    engine_kwargs["connect_args"] = {"check_same_thread": False}

                cls._engine = create_async_engine(config.url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                cls._config_snapshot = config

            except DatabaseInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            logger.info(
                "DatabaseService initialized",
                extra={
                    "url_scheme": config.url_scheme,
                    "pool_class": config.pool_class.__name__,
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine; safe to call when not initialized."""
        async with cls._init_lock:
            if cls._engine is None:
                return
            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    async def create_all(cls) -> None:
        """Create every table registered on `Base.metadata`."""
        engine = cls._get_engine()
        # Register models on the metadata before creating
        import levelup.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @classmethod
    async def drop_all(cls) -> None:
        engine = cls._get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Execute `SELECT 1`; never raises.

        Returns:
            True if the database answered, False otherwise.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.debug(
            "Database health check passed",
            extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
        )
        return True

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._engine

    @classmethod
    def _ensure_initialized(cls) -> async_sessionmaker[AsyncSession]:
        if cls._session_factory is None or cls._config_snapshot is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._session_factory

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for read-only work.

        Raises:
            DatabaseNotInitializedError: If `initialize()` was not awaited.
        """
        factory = cls._ensure_initialized()
        async with factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits when the block exits normally; rolls back and re-raises on any
        exception. Integrity errors are logged at DEBUG because stores use
        unique constraints as their concurrency guard.

        Raises:
            DatabaseNotInitializedError: If `initialize()` was not awaited.
            IntegrityError: On unique/foreign-key violations.
            OperationalError / DBAPIError: On connection or driver failures.
        """
        factory = cls._ensure_initialized()
        config = cls._config_snapshot
        assert config is not None

        start = time.perf_counter()
        async with factory() as session:
            try:
                if config.is_postgres:
                    await session.execute(
                        text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
                    )

                yield session

                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except IntegrityError as exc:
                await session.rollback()
                logger.debug(
                    "Constraint violation in transaction; rolled back",
                    extra={"error_type": type(exc).__name__},
                )
                raise

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    "Database error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            except BaseException:
                await session.rollback()
                raise
