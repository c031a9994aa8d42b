"""User repository implementation."""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authhub.core.auth.entities import User, UserStatus, utcnow
from authhub.core.auth.exceptions import UserAlreadyExistsException, UserNotFoundException
from authhub.core.auth.interfaces import UserRepositoryInterface
from authhub.core.services.auth.models import UserModel


class SqlUserRepository(UserRepositoryInterface):
    """SQLAlchemy implementation of user repository."""

    def __init__(self, session: AsyncSession):
        """
        Initialize user repository.

        Args:
            session: Database session
        """
        self._session = session

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Get user by ID.

        Args:
            user_id: User ID

        Returns:
            User entity if found, None otherwise
        """
        user_model = await self._get_model(user_id)
        if user_model:
            return self._model_to_entity(user_model)
        return None

    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        result = await self._session.execute(
            select(UserModel).where(UserModel.external_id == external_id)
        )
        user_model = result.scalar_one_or_none()

        if user_model:
            return self._model_to_entity(user_model)
        return None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email.

        Args:
            email: Email address

        Returns:
            User entity if found, None otherwise
        """
        result = await self._session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        user_model = result.scalar_one_or_none()

        if user_model:
            return self._model_to_entity(user_model)
        return None

    async def create_user(self, user: User) -> User:
        """
        Create new user.

        Args:
            user: User entity to create; an empty id is replaced by a fresh one

        Returns:
            Created user entity with ID

        Raises:
            UserAlreadyExistsException: If external id or email already exists
        """
        now = utcnow()
        user_model = UserModel(
            external_id=user.external_id,
            email=user.email,
            name=user.name,
            avatar_url=user.avatar_url,
            status=user.status.value,
            email_verified=user.email_verified,
            preferences=dict(user.preferences),
            created_at=user.created_at or now,
            updated_at=user.updated_at or now,
            last_login_at=user.last_login_at,
        )
        if user.id:
            user_model.id = user.id

        try:
            self._session.add(user_model)
            await self._session.flush()
            await self._session.refresh(user_model)
            return self._model_to_entity(user_model)
        except IntegrityError:
            await self._session.rollback()
            raise UserAlreadyExistsException(user.external_id or user.email)

    async def update_user(self, user: User) -> User:
        """
        Update existing user.

        Args:
            user: User entity to update

        Returns:
            Updated user entity

        Raises:
            UserNotFoundException: If the user does not exist
            UserAlreadyExistsException: If the new external id or email is taken
        """
        user_model = await self._get_model(user.id)
        if user_model is None:
            raise UserNotFoundException(user.id)

        self._update_model_from_entity(user_model, user)
        try:
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            raise UserAlreadyExistsException(user.external_id or user.email)
        return self._model_to_entity(user_model)

    async def update_last_login(self, user_id: str, at: datetime) -> Optional[User]:
        user_model = await self._get_model(user_id)
        if user_model is None:
            return None

        user_model.last_login_at = at
        user_model.updated_at = at
        await self._session.flush()
        return self._model_to_entity(user_model)

    async def update_status(self, user_id: str, status: UserStatus) -> Optional[User]:
        user_model = await self._get_model(user_id)
        if user_model is None:
            return None

        user_model.status = status.value
        user_model.updated_at = utcnow()
        await self._session.flush()
        return self._model_to_entity(user_model)

    async def update_preferences(self, user_id: str, preferences: Dict[str, Any]) -> Optional[User]:
        user_model = await self._get_model(user_id)
        if user_model is None:
            return None

        # JSON columns are not mutation tracked; assign a new dict
        user_model.preferences = {**(user_model.preferences or {}), **preferences}
        user_model.updated_at = utcnow()
        await self._session.flush()
        return self._model_to_entity(user_model)

    async def mark_email_verified(self, user_id: str) -> Optional[User]:
        user_model = await self._get_model(user_id)
        if user_model is None:
            return None

        user_model.email_verified = True
        user_model.updated_at = utcnow()
        await self._session.flush()
        return self._model_to_entity(user_model)

    async def _get_model(self, user_id: str) -> Optional[UserModel]:
        result = await self._session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    def _model_to_entity(self, model: UserModel) -> User:
        """
        Convert database model to domain entity.

        Args:
            model: User database model

        Returns:
            User domain entity
        """
        return User(
            id=model.id,
            email=model.email,
            name=model.name,
            external_id=model.external_id,
            avatar_url=model.avatar_url,
            status=UserStatus(model.status),
            email_verified=model.email_verified,
            preferences=dict(model.preferences or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
            last_login_at=model.last_login_at,
        )

    def _update_model_from_entity(self, model: UserModel, entity: User) -> None:
        """
        Update database model from domain entity.

        Args:
            model: User database model
            entity: User domain entity
        """
        model.external_id = entity.external_id
        model.email = entity.email
        model.name = entity.name
        model.avatar_url = entity.avatar_url
        model.status = entity.status.value
        model.email_verified = entity.email_verified
        model.preferences = dict(entity.preferences)
        model.last_login_at = entity.last_login_at
        model.updated_at = utcnow()
