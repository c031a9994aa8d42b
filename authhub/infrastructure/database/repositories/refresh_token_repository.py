"""Refresh token repository implementation."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authhub.core.auth.entities import RefreshToken, TokenKind, TokenStats, utcnow
from authhub.core.auth.exceptions import TokenIssuanceFailure
from authhub.core.auth.interfaces import RefreshTokenRepositoryInterface
from authhub.core.services.auth.models import RefreshTokenModel

logger = logging.getLogger(__name__)


class SqlRefreshTokenRepository(RefreshTokenRepositoryInterface):
    """
    SQLAlchemy implementation of refresh token repository.

    Tokens are looked up by digest only. State changes are issued as
    conditional UPDATE statements so that two concurrent callers can never
    both observe a successful revocation of the same row.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize refresh token repository.

        Args:
            session: Database session
        """
        self._session = session

    async def store(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> RefreshToken:
        """
        Save new refresh token.

        Args:
            user_id: Owning user id
            token_hash: Digest of the token secret
            expires_at: Expiry timestamp
            device_info: Client details

        Returns:
            Created RefreshToken entity

        Raises:
            TokenIssuanceFailure: If the row could not be written; the
                session is rolled back
        """
        token_model = RefreshTokenModel(
            user_id=user_id,
            token_type=TokenKind.REFRESH.value,
            token_hash=token_hash,
            expires_at=expires_at,
            is_revoked=False,
            device_info=dict(device_info or {}),
            created_at=utcnow(),
        )

        try:
            self._session.add(token_model)
            await self._session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store refresh token for user {user_id}: {e}")
            await self._session.rollback()
            raise TokenIssuanceFailure(user_id, str(e)) from e
        return self._model_to_entity(token_model)

    async def validate(self, token_hash: str) -> Optional[RefreshToken]:
        result = await self._session.execute(
            select(RefreshTokenModel).where(
                and_(
                    RefreshTokenModel.token_hash == token_hash,
                    RefreshTokenModel.is_revoked.is_(False),
                    RefreshTokenModel.expires_at > utcnow(),
                )
            )
        )
        token_model = result.scalar_one_or_none()

        if token_model:
            return self._model_to_entity(token_model)
        return None

    async def consume(self, token_hash: str) -> Optional[RefreshToken]:
        """
        Revoke a valid token and return it.

        Args:
            token_hash: Digest of the presented secret

        Returns:
            The consumed token, or None if it was unknown, expired or already
            revoked (including by a concurrent caller)
        """
        now = utcnow()
        result = await self._session.execute(
            update(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.token_hash == token_hash,
                    RefreshTokenModel.is_revoked.is_(False),
                    RefreshTokenModel.expires_at > now,
                )
            )
            .values(is_revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        return await self.find_by_hash(token_hash)

    async def find_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        result = await self._session.execute(
            select(RefreshTokenModel)
            .where(RefreshTokenModel.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        token_model = result.scalar_one_or_none()

        if token_model:
            return self._model_to_entity(token_model)
        return None

    async def revoke(self, token_id: str) -> bool:
        """
        Revoke refresh token by id.

        Args:
            token_id: Token identifier

        Returns:
            True if token was revoked, False if not found or already revoked
        """
        return await self._revoke_where(RefreshTokenModel.id == token_id) > 0

    async def revoke_by_hash(self, token_hash: str) -> bool:
        return await self._revoke_where(RefreshTokenModel.token_hash == token_hash) > 0

    async def revoke_all(self, user_id: str) -> int:
        """
        Revoke all refresh tokens for a user.

        Args:
            user_id: User ID

        Returns:
            Number of tokens revoked
        """
        return await self._revoke_where(RefreshTokenModel.user_id == user_id)

    async def revoke_all_of_kind(self, user_id: str, kind: TokenKind) -> int:
        return await self._revoke_where(
            and_(
                RefreshTokenModel.user_id == user_id,
                RefreshTokenModel.token_type == kind.value,
            )
        )

    async def active_tokens(self, user_id: str) -> List[RefreshToken]:
        result = await self._session.execute(
            select(RefreshTokenModel)
            .where(self._active_for(user_id))
            .order_by(RefreshTokenModel.created_at.desc())
        )
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def active_token_count(self, user_id: str) -> int:
        result = await self._session.execute(
            select(func.count(RefreshTokenModel.id)).where(self._active_for(user_id))
        )
        return result.scalar_one()

    async def sweep_expired(self, retention: timedelta = timedelta(0)) -> int:
        """
        Remove expired refresh tokens from database.

        Args:
            retention: How long expired rows are kept before removal

        Returns:
            Number of tokens removed
        """
        cutoff = utcnow() - retention
        result = await self._session.execute(
            delete(RefreshTokenModel)
            .where(RefreshTokenModel.expires_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def sweep_revoked(self, retention: timedelta = timedelta(0)) -> int:
        """
        Remove revoked refresh tokens from database.

        Rows revoked before revocation times were recorded are always removed.

        Args:
            retention: How long revoked rows are kept before removal

        Returns:
            Number of tokens removed
        """
        cutoff = utcnow() - retention
        result = await self._session.execute(
            delete(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.is_revoked.is_(True),
                    or_(
                        RefreshTokenModel.revoked_at.is_(None),
                        RefreshTokenModel.revoked_at <= cutoff,
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def token_stats(self, user_id: Optional[str] = None) -> TokenStats:
        now = utcnow()
        revoked = RefreshTokenModel.is_revoked.is_(True)
        stmt = select(
            func.count(RefreshTokenModel.id),
            func.sum(case((revoked, 1), else_=0)),
            func.sum(
                case(
                    (and_(RefreshTokenModel.is_revoked.is_(False), RefreshTokenModel.expires_at <= now), 1),
                    else_=0,
                )
            ),
        )
        by_type_stmt = select(
            RefreshTokenModel.token_type, func.count(RefreshTokenModel.id)
        ).group_by(RefreshTokenModel.token_type)
        if user_id is not None:
            stmt = stmt.where(RefreshTokenModel.user_id == user_id)
            by_type_stmt = by_type_stmt.where(RefreshTokenModel.user_id == user_id)

        total, revoked_count, expired_count = (await self._session.execute(stmt)).one()
        by_type = {row[0]: row[1] for row in (await self._session.execute(by_type_stmt)).all()}

        total = total or 0
        revoked_count = revoked_count or 0
        expired_count = expired_count or 0
        return TokenStats(
            total=total,
            active=total - revoked_count - expired_count,
            expired=expired_count,
            revoked=revoked_count,
            by_type=by_type,
        )

    async def _revoke_where(self, condition) -> int:
        result = await self._session.execute(
            update(RefreshTokenModel)
            .where(and_(condition, RefreshTokenModel.is_revoked.is_(False)))
            .values(is_revoked=True, revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def _active_for(user_id: str):
        return and_(
            RefreshTokenModel.user_id == user_id,
            RefreshTokenModel.is_revoked.is_(False),
            RefreshTokenModel.expires_at > utcnow(),
        )

    def _model_to_entity(self, model: RefreshTokenModel) -> RefreshToken:
        """
        Convert database model to domain entity.

        Args:
            model: RefreshToken database model

        Returns:
            RefreshToken domain entity
        """
        return RefreshToken(
            id=model.id,
            user_id=model.user_id,
            token_hash=model.token_hash,
            expires_at=model.expires_at,
            token_type=TokenKind(model.token_type),
            is_revoked=model.is_revoked,
            created_at=model.created_at,
            revoked_at=model.revoked_at,
            device_info=dict(model.device_info or {}),
        )
