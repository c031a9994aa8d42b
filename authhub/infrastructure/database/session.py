"""Database session management."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from authhub.core.auth.exceptions import AuthenticationException
from authhub.settings import get_settings

_async_session_maker: async_sessionmaker[AsyncSession] = None
_engine = None


def get_engine():
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            future=True,
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the session maker."""
    global _async_session_maker
    if _async_session_maker is None:
        engine = get_engine()
        _async_session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_maker


@asynccontextmanager
async def session_scope(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session that commits when the block completes.

    A rejected authentication attempt still commits, so the audit entry
    written before the rejection is kept. Any other error rolls back.

    Args:
        session_maker: Session factory, defaults to the application one

    Yields:
        AsyncSession: Database session
    """
    async with (session_maker or get_session_maker())() as session:
        try:
            yield session
            await session.commit()
        except AuthenticationException:
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise


async def close_db_connections():
    """Close all database connections."""
    global _engine, _async_session_maker
    if _engine:
        await _engine.dispose()
        _engine = None
    _async_session_maker = None
