"""Database session management for the Campus CMS application.

Covers engine and session factory setup, request-scoped sessions and
explicit transactions, slow query accounting, schema creation at startup and
spans around list-store queries.

The ``SessionManager`` is the data-store handle injected into every route via
``get_session_manager``; nothing else in the application builds engines.
"""

import time
from contextlib import asynccontextmanager
from functools import wraps
from typing import AsyncGenerator, Dict, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool

from campus_cms.core.config import get_settings
from campus_cms.core.logging import get_logger
from campus_cms.models.database import Base

logger = get_logger(__name__)
settings = get_settings()
tracer = trace.get_tracer(__name__)

MAX_LOGGED_STATEMENT = 500


class DatabaseMetrics:
    """Track database performance metrics."""

    def __init__(self, slow_query_threshold: float):
        self.query_count = 0
        self.slow_queries = 0
        self.error_count = 0
        self.slow_query_threshold = slow_query_threshold

    def record_query(self, duration: float):
        self.query_count += 1
        if duration > self.slow_query_threshold:
            self.slow_queries += 1

    def record_error(self):
        self.error_count += 1

    def snapshot(self) -> Dict[str, int]:
        return {
            "query_count": self.query_count,
            "slow_queries": self.slow_queries,
            "error_count": self.error_count,
        }


class SessionManager:
    """Manage database sessions and connections."""

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.echo = settings.SQL_ECHO if echo is None else echo
        self.engine = self._create_engine()
        self.session_factory = self._create_session_factory()
        self.metrics = DatabaseMetrics(settings.SLOW_QUERY_THRESHOLD)

        self._setup_engine_events()

    def _create_engine(self) -> AsyncEngine:
        """Create SQLAlchemy engine with proper configuration."""
        options = {"echo": self.echo, "pool_pre_ping": True}

        if make_url(self.database_url).get_backend_name() != "sqlite":
            options.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE
            )
        else:
            # SQLite connections are cheap and must not outlive their event loop
            options["poolclass"] = NullPool

        return create_async_engine(self.database_url, **options)

    def _create_session_factory(self) -> async_sessionmaker:
        return async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )

    def _setup_engine_events(self):
        """Set up SQLAlchemy engine event listeners."""
        sync_engine = self.engine.sync_engine

        @event.listens_for(sync_engine, 'before_cursor_execute')
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault('query_start_time', []).append(time.perf_counter())

        @event.listens_for(sync_engine, 'after_cursor_execute')
        def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            start_time = conn.info['query_start_time'].pop()
            duration = time.perf_counter() - start_time
            self.metrics.record_query(duration)

            if duration > self.metrics.slow_query_threshold:
                logger.warning(
                    "Slow query detected",
                    duration=round(duration, 3),
                    statement=statement[:MAX_LOGGED_STATEMENT]
                )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with automatic cleanup."""
        session: AsyncSession = self.session_factory()
        try:
            yield session
        except Exception:
            self.metrics.record_error()
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a session whose work commits on exit and rolls back on error."""
        async with self.session() as session:
            async with session.begin():
                yield session

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    async def healthcheck(self) -> bool:
        """Perform database health check."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed", error=e)
            return False


_session_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """FastAPI dependency returning the process-wide data-store handle."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


async def init_db(manager: SessionManager):
    """Create tables that do not exist yet."""
    await manager.create_all()
    logger.info("Database schema ensured", url=make_url(manager.database_url).render_as_string(hide_password=True))


def with_tracing(func):
    """Decorator for database operation tracing."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        with tracer.start_as_current_span(
            f"db_{func.__name__}",
            kind=trace.SpanKind.CLIENT
        ) as span:
            try:
                result = await func(*args, **kwargs)
                span.set_status(Status(StatusCode.OK))
                return result
            except Exception as e:
                span.set_status(
                    Status(StatusCode.ERROR, str(e))
                )
                raise
    return wrapper
