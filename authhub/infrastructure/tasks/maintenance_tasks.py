"""Celery tasks for token and audit log maintenance."""

import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from authhub.core.auth.audit import SessionAuditor
from authhub.core.auth.entities import utcnow
from authhub.infrastructure.database.repositories.login_log_repository import SqlLoginLogRepository
from authhub.infrastructure.database.repositories.refresh_token_repository import SqlRefreshTokenRepository
from authhub.infrastructure.database.session import close_db_connections, session_scope
from authhub.infrastructure.tasks.celery_app import celery_app
from authhub.settings import get_settings
from authhub.utils.async_helpers import run_async

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _in_session(work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run work in one committed session; the engine is disposed with the event loop."""
    try:
        async with session_scope() as session:
            return await work(session)
    finally:
        await close_db_connections()


def _completed(**fields: Any) -> Dict:
    return {"status": "COMPLETED", **fields, "completed_at": utcnow().isoformat()}


def _failed(e: Exception) -> Dict:
    logger.error(f"Maintenance task failed: {e}", exc_info=True)
    return {
        "status": "FAILED",
        "error": str(e),
        "failed_at": utcnow().isoformat(),
    }


@celery_app.task
def sweep_expired_tokens() -> Dict:
    """
    Delete refresh tokens that expired before the retention horizon.

    Returns:
        Sweep result with count of removed tokens
    """
    retention = timedelta(days=get_settings().token_retention_days)
    try:
        removed = run_async(
            _in_session(lambda session: SqlRefreshTokenRepository(session).sweep_expired(retention))
        )
    except Exception as e:
        return _failed(e)
    logger.info(f"Swept {removed} expired refresh tokens")
    return _completed(tokens_removed=removed)


@celery_app.task
def sweep_revoked_tokens() -> Dict:
    """
    Delete refresh tokens revoked before the retention horizon.

    Returns:
        Sweep result with count of removed tokens
    """
    retention = timedelta(days=get_settings().token_retention_days)
    try:
        removed = run_async(
            _in_session(lambda session: SqlRefreshTokenRepository(session).sweep_revoked(retention))
        )
    except Exception as e:
        return _failed(e)
    logger.info(f"Swept {removed} revoked refresh tokens")
    return _completed(tokens_removed=removed)


@celery_app.task
def prune_login_logs() -> Dict:
    """
    Delete login log entries older than the configured retention.

    Returns:
        Prune result with count of removed entries
    """
    days_to_keep = get_settings().login_log_retention_days
    try:
        removed = run_async(
            _in_session(lambda session: SessionAuditor(SqlLoginLogRepository(session)).prune(days_to_keep))
        )
    except Exception as e:
        return _failed(e)
    return _completed(entries_removed=removed)


@celery_app.task
def report_suspicious_activity() -> Dict:
    """
    Log IP addresses and users with many recent failed logins.

    Returns:
        Keys of flagged IP addresses and users
    """
    settings = get_settings()
    try:
        report = run_async(
            _in_session(
                lambda session: SessionAuditor(SqlLoginLogRepository(session)).suspicious_activity(
                    settings.suspicious_window, settings.suspicious_failed_attempt_threshold
                )
            )
        )
    except Exception as e:
        return _failed(e)
    return _completed(
        window=str(report.window),
        suspicious_ips=[source.key for source in report.suspicious_ips],
        suspicious_users=[source.key for source in report.suspicious_users],
    )
