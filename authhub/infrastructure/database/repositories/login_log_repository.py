"""Login audit log repository implementation."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from authhub.core.auth.entities import (
    LoginLogEntry,
    LoginMethod,
    LoginStats,
    Page,
    SuspiciousSource,
    utcnow,
)
from authhub.core.auth.interfaces import LoginLogRepositoryInterface
from authhub.core.services.auth.models import LoginLogModel


def _is_login_attempt():
    """Match entries that record a login or refresh, not an account action."""
    return LoginLogModel.location["action"].as_string().is_(None)


class SqlLoginLogRepository(LoginLogRepositoryInterface):
    """SQLAlchemy implementation of login log repository."""

    def __init__(self, session: AsyncSession):
        """
        Initialize login log repository.

        Args:
            session: Database session
        """
        self._session = session

    async def create(self, entry: LoginLogEntry) -> LoginLogEntry:
        """
        Append an audit entry.

        Args:
            entry: Entry to persist; its id is assigned here

        Returns:
            Stored entry
        """
        log_model = LoginLogModel(
            user_id=entry.user_id,
            login_method=entry.login_method.value,
            success=entry.success,
            error_message=entry.error_message,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            location=entry.location,
            login_at=entry.login_at or utcnow(),
        )

        self._session.add(log_model)
        await self._session.flush()
        return self._model_to_entity(log_model)

    async def find_by_user(self, user_id: str, page: int, limit: int) -> Page[LoginLogEntry]:
        return await self._paginate(LoginLogModel.user_id == user_id, page, limit)

    async def find_by_ip(self, ip_address: str, page: int, limit: int) -> Page[LoginLogEntry]:
        return await self._paginate(LoginLogModel.ip_address == ip_address, page, limit)

    async def last_successful(self, user_id: str) -> Optional[LoginLogEntry]:
        result = await self._session.execute(
            select(LoginLogModel)
            .where(
                and_(
                    LoginLogModel.user_id == user_id,
                    LoginLogModel.success.is_(True),
                    _is_login_attempt(),
                )
            )
            .order_by(LoginLogModel.login_at.desc())
            .limit(1)
        )
        log_model = result.scalar_one_or_none()

        if log_model:
            return self._model_to_entity(log_model)
        return None

    async def count_failed(
        self,
        since: datetime,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        conditions = [LoginLogModel.success.is_(False), LoginLogModel.login_at >= since]
        if user_id is not None:
            conditions.append(LoginLogModel.user_id == user_id)
        if ip_address is not None:
            conditions.append(LoginLogModel.ip_address == ip_address)

        result = await self._session.execute(
            select(func.count(LoginLogModel.id)).where(and_(*conditions))
        )
        return result.scalar_one()

    async def stats(
        self, since: Optional[datetime] = None, user_id: Optional[str] = None
    ) -> LoginStats:
        """
        Aggregate login totals.

        Account actions such as a global logout are not login attempts and
        are left out of every figure.

        Args:
            since: Only count entries at or after this timestamp
            user_id: Only count entries of this user

        Returns:
            Aggregated statistics
        """
        conditions = [_is_login_attempt()]
        if since is not None:
            conditions.append(LoginLogModel.login_at >= since)
        if user_id is not None:
            conditions.append(LoginLogModel.user_id == user_id)

        totals = select(
            func.count(LoginLogModel.id),
            func.sum(case((LoginLogModel.success.is_(True), 1), else_=0)),
            func.count(func.distinct(LoginLogModel.user_id)),
            func.count(func.distinct(LoginLogModel.ip_address)),
            func.max(case((LoginLogModel.success.is_(True), LoginLogModel.login_at), else_=None)),
        )
        by_method = select(
            LoginLogModel.login_method, func.count(LoginLogModel.id)
        ).group_by(LoginLogModel.login_method)
        totals = totals.where(and_(*conditions))
        by_method = by_method.where(and_(*conditions))

        total, successful, unique_users, unique_ips, last_login_at = (
            await self._session.execute(totals)
        ).one()
        method_counts = {row[0]: row[1] for row in (await self._session.execute(by_method)).all()}

        total = total or 0
        successful = successful or 0
        return LoginStats(
            total=total,
            successful=successful,
            failed=total - successful,
            unique_users=unique_users or 0,
            unique_ips=unique_ips or 0,
            by_method=method_counts,
            last_login_at=last_login_at,
        )

    async def failed_groups_by_ip(self, since: datetime, threshold: int) -> List[SuspiciousSource]:
        return await self._failed_groups(LoginLogModel.ip_address, since, threshold)

    async def failed_groups_by_user(self, since: datetime, threshold: int) -> List[SuspiciousSource]:
        return await self._failed_groups(LoginLogModel.user_id, since, threshold)

    async def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete entries logged before a cutoff.

        Args:
            cutoff: Entries strictly older than this are removed

        Returns:
            Number of entries removed
        """
        result = await self._session.execute(
            delete(LoginLogModel)
            .where(LoginLogModel.login_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _paginate(self, condition, page: int, limit: int) -> Page[LoginLogEntry]:
        page = max(page, 1)
        total = (
            await self._session.execute(select(func.count(LoginLogModel.id)).where(condition))
        ).scalar_one()
        result = await self._session.execute(
            select(LoginLogModel)
            .where(condition)
            .order_by(LoginLogModel.login_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [self._model_to_entity(model) for model in result.scalars().all()]
        return Page(items=items, total=total, page=page, limit=limit)

    async def _failed_groups(self, column, since: datetime, threshold: int) -> List[SuspiciousSource]:
        attempts = func.count(LoginLogModel.id)
        result = await self._session.execute(
            select(column, attempts, func.max(LoginLogModel.login_at))
            .where(
                and_(
                    LoginLogModel.success.is_(False),
                    LoginLogModel.login_at >= since,
                    column.is_not(None),
                )
            )
            .group_by(column)
            .having(attempts >= threshold)
            .order_by(attempts.desc())
        )
        return [
            SuspiciousSource(key=key, failed_attempts=count, last_attempt_at=last_at)
            for key, count, last_at in result.all()
        ]

    def _model_to_entity(self, model: LoginLogModel) -> LoginLogEntry:
        return LoginLogEntry(
            id=model.id,
            user_id=model.user_id,
            login_method=LoginMethod(model.login_method),
            success=model.success,
            login_at=model.login_at,
            error_message=model.error_message,
            ip_address=model.ip_address,
            user_agent=model.user_agent,
            location=model.location,
        )
