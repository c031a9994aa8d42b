"""Database connection management."""

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from authhub.settings import Settings


class Base(DeclarativeBase):
    """Base class for all database models."""

    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


class DatabaseManager:
    """
    Database engine management.

    Owns a short-lived engine used to create the schema at startup.
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize database manager.

        Args:
            settings: Application settings containing database configuration
        """
        self.settings = settings
        self._engine: AsyncEngine | None = None

    async def initialize(self) -> None:
        """Initialize database engine."""
        self._engine = create_async_engine(
            self.settings.database_url,
            echo=self.settings.debug,
            future=True,
            pool_pre_ping=True,
        )

    async def create_all(self) -> None:
        """Create missing tables without running migrations."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections and cleanup resources."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None

    @property
    def engine(self) -> AsyncEngine:
        """
        Get database engine.

        Returns:
            Async database engine

        Raises:
            RuntimeError: If database manager not initialized
        """
        if not self._engine:
            raise RuntimeError("Database manager not initialized")
        return self._engine
