"""Login audit API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from authhub.core.auth.entities import LoginLogEntry, LoginStats, Page, SuspiciousSource


class LoginLogResponse(BaseModel):
    """Single login log entry."""

    id: str
    user_id: Optional[str] = None
    login_method: str = Field(..., examples=["federated_login"])
    success: bool
    login_at: datetime
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    @classmethod
    def from_entry(cls, entry: LoginLogEntry) -> "LoginLogResponse":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            login_method=entry.login_method.value,
            success=entry.success,
            login_at=entry.login_at,
            error_message=entry.error_message,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            context=entry.location,
        )


class LoginHistoryResponse(BaseModel):
    """Paginated login history."""

    items: List[LoginLogResponse]
    total: int = Field(..., description="Total number of matching entries")
    page: int
    limit: int

    @classmethod
    def from_page(cls, page: Page[LoginLogEntry]) -> "LoginHistoryResponse":
        return cls(
            items=[LoginLogResponse.from_entry(entry) for entry in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )


class LoginStatsResponse(BaseModel):
    """Aggregated login statistics."""

    window: Optional[str] = Field(None, examples=["24 hours"])
    total: int
    successful: int
    failed: int
    success_rate: int = Field(..., description="Successful share in percent")
    unique_users: int
    unique_ips: int
    by_method: Dict[str, int]
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_stats(cls, stats: LoginStats, window: Optional[str] = None) -> "LoginStatsResponse":
        return cls(
            window=window,
            total=stats.total,
            successful=stats.successful,
            failed=stats.failed,
            success_rate=stats.success_rate,
            unique_users=stats.unique_users,
            unique_ips=stats.unique_ips,
            by_method=stats.by_method,
            last_login_at=stats.last_login_at,
        )


class SuspiciousSourceResponse(BaseModel):
    """IP address or user with repeated failures."""

    key: str
    failed_attempts: int
    last_attempt_at: datetime

    @classmethod
    def from_source(cls, source: SuspiciousSource) -> "SuspiciousSourceResponse":
        return cls(
            key=source.key,
            failed_attempts=source.failed_attempts,
            last_attempt_at=source.last_attempt_at,
        )


class SuspiciousActivityResponse(BaseModel):
    """Suspicious activity report."""

    window: str = Field(..., examples=["1 hours"])
    threshold: int
    suspicious_ips: List[SuspiciousSourceResponse]
    suspicious_users: List[SuspiciousSourceResponse]
