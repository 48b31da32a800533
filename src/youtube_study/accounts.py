"""
User account management: fetch-or-create, profile updates and usage statistics.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .database import Database, SummaryHistory, User, first_of_next_month, isoformat_utc
from .error_handling import InvalidRequestError, NotFoundError, PersistenceUnavailableError
from .models import Identity, Plan, Preferences, Usage, utcnow

logger = logging.getLogger(__name__)


PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "profileImage": "profile_image",
}


class AccountService:
    """Accounts keyed by the identity provider's user ID."""

    def __init__(self, database: Database):
        self.database = database

    async def get_or_create(self, identity: Identity) -> User:
        """
        Fetch the account for ``identity``, creating it on first sight.

        Refreshes ``last_login_at`` on every call. If a concurrent call inserts
        the same identity first, that row is returned.

        Raises:
            PersistenceUnavailableError: If the store fails, or the email
                belongs to another account
        """
        try:
            return await self._get_or_insert(identity)
        except IntegrityError as e:
            logger.info(f"Account for {identity.user_id} was created concurrently, re-reading: {e.orig}")

        try:
            async with self.database.session() as session:
                user = await self._find(session, identity.user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Database unavailable while fetching account {identity.user_id}: {e}")
            raise PersistenceUnavailableError("get user profile", details=str(e))

        if user is None:
            logger.error(f"Account for {identity.user_id} conflicts with an existing one")
            raise PersistenceUnavailableError("get user profile", details="Account already exists for this email")
        return user

    async def _find(self, session, user_id: str) -> Optional[User]:
        return await session.scalar(select(User).where(User.external_identity_id == user_id))

    async def _get_or_insert(self, identity: Identity) -> User:
        try:
            async with self.database.session() as session:
                user = await self._find(session, identity.user_id)
                if user is None:
                    user = User(
                        external_identity_id=identity.user_id,
                        email=identity.email or None,
                        first_name=identity.first_name,
                        last_name=identity.last_name,
                        profile_image=identity.profile_image,
                        plan=Plan.FREE,
                    )
                    session.add(user)
                    logger.info(f"Creating account for {identity.user_id}")
                else:
                    user.last_login_at = utcnow()
                await session.commit()
                return user
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.warning(f"Database unavailable while fetching account {identity.user_id}: {e}")
            raise PersistenceUnavailableError("get user profile", details=str(e))

    @staticmethod
    def identity_only_profile(identity: Identity) -> Dict[str, Any]:
        """Profile built from the identity alone, for when the database is unreachable."""
        now = utcnow()
        return {
            "id": identity.user_id,
            "externalIdentityId": identity.user_id,
            "email": identity.email,
            "firstName": identity.first_name,
            "lastName": identity.last_name,
            "profileImage": identity.profile_image,
            "plan": Plan.FREE.value,
            "usage": Usage(monthly_reset_at=first_of_next_month(now)).to_response(),
            "preferences": Preferences().model_dump(mode="json"),
            "createdAt": now.isoformat(),
            "updatedAt": now.isoformat(),
            "lastLoginAt": now.isoformat(),
        }

    async def update(self, identity: Identity, changes: Dict[str, Any]) -> User:
        """
        Apply whitelisted profile changes.

        Accepts ``firstName``, ``lastName``, ``profileImage`` and a partial
        ``preferences`` object; anything else is ignored.

        Raises:
            InvalidRequestError: If a preference value is invalid
            NotFoundError: If the account does not exist
            PersistenceUnavailableError: If the store fails
        """
        try:
            async with self.database.session() as session:
                user = await session.scalar(
                    select(User).where(User.external_identity_id == identity.user_id)
                )
                if user is None:
                    raise NotFoundError("User not found")

                for key, attribute in PROFILE_FIELDS.items():
                    if key in changes:
                        setattr(user, attribute, changes[key])

                if isinstance(changes.get("preferences"), dict):
                    merged = dict(user.preferences or {})
                    merged.update(changes["preferences"])
                    try:
                        user.preferences = Preferences(**merged).model_dump(mode="json")
                    except ValueError as e:
                        raise InvalidRequestError("Invalid preferences", details=str(e))

                await session.commit()
                await session.refresh(user)
                logger.info(f"Updated profile for {identity.user_id}")
                return user
        except SQLAlchemyError as e:
            logger.warning(f"Database unavailable for profile update of {identity.user_id}: {e}")
            raise PersistenceUnavailableError("update profile", details=str(e))

    async def stats(self, identity: Identity) -> Dict[str, Any]:
        """
        Aggregate the user's history by content type.

        Raises:
            NotFoundError: If the account does not exist
            PersistenceUnavailableError: If the store fails
        """
        try:
            async with self.database.session() as session:
                user = await session.scalar(
                    select(User).where(User.external_identity_id == identity.user_id)
                )
                if user is None:
                    raise NotFoundError("User not found")

                rows = await session.execute(
                    select(
                        SummaryHistory.content_type,
                        func.count(SummaryHistory.id),
                        func.max(SummaryHistory.created_at),
                    )
                    .where(SummaryHistory.user_id == identity.user_id)
                    .group_by(SummaryHistory.content_type)
                )
                by_type = {
                    content_type.value: {
                        "count": count,
                        "lastCreated": isoformat_utc(last_created),
                    }
                    for content_type, count, last_created in rows
                }
        except SQLAlchemyError as e:
            logger.error(f"Failed to compute stats for {identity.user_id}: {e}")
            raise PersistenceUnavailableError("get user statistics", details=str(e))

        return {
            "user": {
                "plan": user.plan.value,
                "usage": user.usage.to_response(),
                "createdAt": isoformat_utc(user.created_at),
            },
            "stats": {
                "total": sum(entry["count"] for entry in by_type.values()),
                "byType": by_type,
            },
        }
