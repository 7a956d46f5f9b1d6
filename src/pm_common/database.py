from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models across modules."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# SQLSTATEs that mean "another transaction holds what we need, try again":
# lock_not_available, deadlock_detected, serialization_failure
_RETRYABLE_SQLSTATES = frozenset({"55P03", "40P01", "40001"})


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session


async def set_lock_timeout(db: AsyncSession, timeout_ms: int | None = None) -> None:
    """Bound row-lock waits for the current transaction only (SET LOCAL)."""
    ms = int(timeout_ms if timeout_ms is not None else settings.DB_LOCK_TIMEOUT_MS)
    # SET does not accept bind parameters; ms is an int so interpolation is safe
    await db.execute(text(f"SET LOCAL lock_timeout = {ms}"))


def is_retryable_db_error(exc: BaseException) -> bool:
    """True for lock timeouts, deadlocks and serialization failures."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in _RETRYABLE_SQLSTATES
