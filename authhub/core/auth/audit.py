"""Login audit trail."""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Union

from .entities import (
    LoginLogEntry,
    LoginMethod,
    LoginStats,
    Page,
    SuspiciousActivityReport,
    TimeWindow,
    utcnow,
)
from .interfaces import LoginLogRepositoryInterface

logger = logging.getLogger(__name__)

WindowLike = Union[TimeWindow, str]

DEFAULT_SUSPICIOUS_WINDOW = TimeWindow.parse("1 hour")
DEFAULT_SUSPICIOUS_THRESHOLD = 5


def _as_window(window: WindowLike) -> TimeWindow:
    if isinstance(window, TimeWindow):
        return window
    return TimeWindow.parse(window)


class SessionAuditor:
    """
    Append-only record of login attempts with read-side analysis.

    The auditor only observes. Suspicious activity is reported, never acted
    upon.
    """

    def __init__(self, login_log_repository: LoginLogRepositoryInterface) -> None:
        """
        Initialize auditor.

        Args:
            login_log_repository: Login log data access interface
        """
        self._repository = login_log_repository

    async def record(
        self,
        user_id: Optional[str],
        method: LoginMethod,
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        error_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> LoginLogEntry:
        """
        Append one login attempt.

        Args:
            user_id: User the attempt is attributed to, if known
            method: How the user tried to authenticate
            success: Outcome of the attempt
            ip_address: Client IP address
            user_agent: Client user agent
            error_message: Failure reason
            context: Structured details stored with the entry

        Returns:
            Stored entry
        """
        entry = LoginLogEntry(
            id=None,
            user_id=user_id,
            login_method=method,
            success=success,
            login_at=utcnow(),
            error_message=error_message,
            ip_address=ip_address,
            user_agent=user_agent,
            location=context,
        )
        stored = await self._repository.create(entry)
        if not success:
            logger.info(
                f"Failed {method.value} attempt",
                extra={"user_id": user_id, "ip_address": ip_address, "reason": error_message},
            )
        return stored

    async def record_action(
        self,
        user_id: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginLogEntry:
        """Record an account action such as a global logout."""
        context: Dict[str, Any] = {"action": action}
        if details:
            context.update(details)
        return await self.record(
            user_id,
            LoginMethod.FEDERATED_LOGIN,
            True,
            ip_address=ip_address,
            user_agent=user_agent,
            context=context,
        )

    async def history_for_user(self, user_id: str, page: int = 1, limit: int = 10) -> Page[LoginLogEntry]:
        return await self._repository.find_by_user(user_id, page, limit)

    async def history_for_ip(self, ip_address: str, page: int = 1, limit: int = 10) -> Page[LoginLogEntry]:
        return await self._repository.find_by_ip(ip_address, page, limit)

    async def last_successful_login(self, user_id: str) -> Optional[LoginLogEntry]:
        return await self._repository.last_successful(user_id)

    async def failed_attempts(
        self,
        window: WindowLike,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        """
        Count failed attempts inside a trailing window.

        Args:
            window: Window such as "15 minutes"
            user_id: Restrict to one user
            ip_address: Restrict to one IP address

        Returns:
            Number of failed attempts

        Raises:
            ValueError: If the window expression is malformed
        """
        since = _as_window(window).start()
        return await self._repository.count_failed(since, user_id=user_id, ip_address=ip_address)

    async def stats(
        self, window: Optional[WindowLike] = None, user_id: Optional[str] = None
    ) -> LoginStats:
        since = _as_window(window).start() if window is not None else None
        return await self._repository.stats(since=since, user_id=user_id)

    async def suspicious_activity(
        self,
        window: WindowLike = DEFAULT_SUSPICIOUS_WINDOW,
        threshold: int = DEFAULT_SUSPICIOUS_THRESHOLD,
    ) -> SuspiciousActivityReport:
        """
        Report IP addresses and users with many recent failures.

        A source is reported when its failure count in the window reaches the
        threshold.

        Args:
            window: Trailing window to inspect
            threshold: Minimum number of failures

        Returns:
            Report with offending IP addresses and users
        """
        if threshold < 1:
            raise ValueError("Threshold must be at least 1")
        parsed = _as_window(window)
        since = parsed.start()
        by_ip = await self._repository.failed_groups_by_ip(since, threshold)
        by_user = await self._repository.failed_groups_by_user(since, threshold)
        if by_ip or by_user:
            logger.warning(
                f"Suspicious login activity in the last {parsed}: "
                f"{len(by_ip)} IP addresses, {len(by_user)} users"
            )
        return SuspiciousActivityReport(
            window=parsed,
            threshold=threshold,
            suspicious_ips=by_ip,
            suspicious_users=by_user,
        )

    async def prune(self, days_to_keep: int = 90) -> int:
        """
        Delete entries older than a number of days.

        Args:
            days_to_keep: Age in days beyond which entries are removed

        Returns:
            Number of entries removed
        """
        if days_to_keep < 0:
            raise ValueError("days_to_keep cannot be negative")
        cutoff = utcnow() - timedelta(days=days_to_keep)
        removed = await self._repository.delete_older_than(cutoff)
        logger.info(f"Pruned {removed} login log entries older than {days_to_keep} days")
        return removed
