"""Mapping of federation profiles onto local users."""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from .entities import ProviderProfile, User, UserStatus, utcnow
from .exceptions import IncompleteProfile, UserAlreadyExistsException
from .interfaces import UserRepositoryInterface

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Find, link or create the local user behind a provider profile.

    Lookup order is provider id first, then exact email. A user found by
    email gets the provider id linked onto it, so later logins take the
    first branch.
    """

    def __init__(self, user_repository: UserRepositoryInterface) -> None:
        self._user_repository = user_repository

    async def resolve(self, profile: ProviderProfile) -> Tuple[User, bool]:
        """
        Resolve a provider profile to a user.

        Args:
            profile: Profile returned by the identity provider

        Returns:
            Tuple of the user and whether it was created by this call

        Raises:
            IncompleteProfile: If the profile has no usable email or no provider id
        """
        if not profile.external_id:
            raise IncompleteProfile("external_id")
        email = (profile.email or "").strip()
        if not email or "@" not in email:
            raise IncompleteProfile("email")
        profile = replace(profile, email=email)

        existing = await self._find_existing(profile)
        if existing is not None:
            return existing, False

        user = User(
            id="",
            email=profile.email,
            name=profile.display_name or profile.email,
            external_id=profile.external_id,
            avatar_url=profile.avatar_url,
            status=UserStatus.ACTIVE,
            email_verified=profile.email_verified,
            preferences={},
        )
        try:
            created = await self._user_repository.create_user(user)
        except UserAlreadyExistsException:
            logger.info(f"Concurrent first login for provider id {profile.external_id}, re-reading user")
            existing = await self._find_existing(profile)
            if existing is None:
                raise
            return existing, False

        logger.info(f"Created user {created.id} from provider profile")
        return created, True

    async def touch_last_login(self, user: User) -> User:
        """Stamp the user's last successful login with the current time."""
        updated = await self._user_repository.update_last_login(user.id, utcnow())
        return updated or user

    async def _find_existing(self, profile: ProviderProfile) -> Optional[User]:
        user = await self._user_repository.get_user_by_external_id(profile.external_id)
        if user is not None:
            return await self._user_repository.update_user(
                replace(
                    user,
                    name=profile.display_name or user.name,
                    avatar_url=profile.avatar_url,
                )
            )

        user = await self._user_repository.get_user_by_email(profile.email)
        if user is not None:
            logger.info(f"Linking provider id to existing user {user.id}")
            return await self._user_repository.update_user(
                replace(
                    user,
                    external_id=profile.external_id,
                    name=profile.display_name or user.name,
                    avatar_url=profile.avatar_url,
                    email_verified=user.email_verified or profile.email_verified,
                )
            )
        return None
