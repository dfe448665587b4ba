from contextlib import contextmanager
from typing import Any, AsyncGenerator, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from paperbull.config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def _engine_options(url: str, pool_size: int, max_overflow: int) -> Dict[str, Any]:
    """Pool sizing applies to server databases only; SQLite keeps its default pool."""
    options: Dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=pool_size, max_overflow=max_overflow)
    return options


# Async engine for FastAPI
engine = create_async_engine(
    settings.database_url,
    **_engine_options(settings.database_url, pool_size=10, max_overflow=20),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Sync engine for Celery workers
sync_engine = create_engine(
    settings.database_sync_url,
    **_engine_options(settings.database_sync_url, pool_size=5, max_overflow=10),
)

sync_session_maker = sessionmaker(
    bind=sync_engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Create tables that do not exist yet (development convenience)."""
    # Models must be registered on Base.metadata before create_all.
    from paperbull import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@contextmanager
def get_sync_db() -> Generator[Session, None, None]:
    """Context manager for getting sync database session (for Celery tasks)."""
    session = sync_session_maker()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
