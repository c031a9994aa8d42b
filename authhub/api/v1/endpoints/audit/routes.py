"""Login audit API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from authhub.api.dependencies import get_auditor, get_current_user, require_admin
from authhub.core.auth.audit import SessionAuditor
from authhub.core.auth.entities import TimeWindow, User
from authhub.settings import Settings, get_settings
from .schemas import (
    LoginHistoryResponse,
    LoginStatsResponse,
    SuspiciousActivityResponse,
    SuspiciousSourceResponse,
)

router = APIRouter(prefix="/audit", tags=["Audit"])


def _parse_window(value: Optional[str]) -> Optional[TimeWindow]:
    if value is None:
        return None
    try:
        return TimeWindow.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get(
    "/logins/me",
    response_model=LoginHistoryResponse,
    summary="My login history",
    description="Paginated login history of the current user, newest first.",
)
async def my_login_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    auditor: SessionAuditor = Depends(get_auditor),
) -> LoginHistoryResponse:
    history = await auditor.history_for_user(current_user.id, page, limit)
    return LoginHistoryResponse.from_page(history)


@router.get(
    "/logins/ip/{ip_address}",
    response_model=LoginHistoryResponse,
    summary="Login history of an IP address",
    description="Paginated login history of one IP address. Administrators only.",
)
async def ip_login_history(
    ip_address: str = Path(..., max_length=45),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    auditor: SessionAuditor = Depends(get_auditor),
) -> LoginHistoryResponse:
    history = await auditor.history_for_ip(ip_address, page, limit)
    return LoginHistoryResponse.from_page(history)


@router.get(
    "/stats",
    response_model=LoginStatsResponse,
    summary="My login statistics",
    description="Login totals of the current user, optionally limited to a trailing window.",
)
async def my_login_stats(
    window: Optional[str] = Query(None, description='Trailing window such as "24 hours"'),
    current_user: User = Depends(get_current_user),
    auditor: SessionAuditor = Depends(get_auditor),
) -> LoginStatsResponse:
    parsed = _parse_window(window)
    stats = await auditor.stats(parsed, user_id=current_user.id)
    return LoginStatsResponse.from_stats(stats, str(parsed) if parsed else None)


@router.get(
    "/suspicious",
    response_model=SuspiciousActivityResponse,
    summary="Suspicious activity",
    description="IP addresses and users with repeated failed logins. Administrators only.",
)
async def suspicious_activity(
    window: Optional[str] = Query(None, description='Trailing window, defaults to the configured one'),
    threshold: Optional[int] = Query(None, ge=1),
    admin: User = Depends(require_admin),
    auditor: SessionAuditor = Depends(get_auditor),
    settings: Settings = Depends(get_settings),
) -> SuspiciousActivityResponse:
    report = await auditor.suspicious_activity(
        _parse_window(window) or settings.suspicious_window,
        threshold or settings.suspicious_failed_attempt_threshold,
    )
    return SuspiciousActivityResponse(
        window=str(report.window),
        threshold=report.threshold,
        suspicious_ips=[SuspiciousSourceResponse.from_source(s) for s in report.suspicious_ips],
        suspicious_users=[SuspiciousSourceResponse.from_source(s) for s in report.suspicious_users],
    )
