"""Database initialization utilities."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from authhub.core.services.auth.models import LoginLogModel, RefreshTokenModel, UserModel
from authhub.infrastructure.database.session import get_session_maker

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def get_alembic_config() -> Config:
    """Get Alembic configuration from the project root."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return alembic_cfg


def run_alembic_migrations() -> None:
    """Run all pending Alembic migrations."""
    command.upgrade(get_alembic_config(), "head")


async def init_database() -> None:
    """Initialize database schema with Alembic migrations."""
    try:
        logger.info("Running database migrations...")
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, run_alembic_migrations)
        logger.info("Database migrations completed successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def check_database_health() -> bool:
    """Check database connectivity."""
    try:
        async with get_session_maker()() as session:
            await session.execute(text("SELECT 1"))
            return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def get_database_info() -> Dict[str, Any]:
    """
    Get row counts of the authentication tables.

    Returns:
        Health flag and per-table row counts
    """
    try:
        async with get_session_maker()() as session:
            tables = {}
            for name, model in (
                ("users", UserModel),
                ("user_tokens", RefreshTokenModel),
                ("login_logs", LoginLogModel),
            ):
                result = await session.execute(select(func.count()).select_from(model))
                tables[name] = result.scalar_one()
            return {"healthy": True, "tables": tables}
    except SQLAlchemyError as e:
        return {"healthy": False, "error": str(e), "tables": {}}
