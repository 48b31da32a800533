"""
History recording for generated artifacts, notes and chat exchanges.

Every successful write also increments the owner's usage counter for the entry's
content type, in the same session, with a single ``UPDATE ... SET n = n + 1``.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from .database import Database, SummaryHistory, User
from .error_handling import InvalidRequestError, NotFoundError, PersistenceUnavailableError
from .models import ContentType, HistoryEntryInput, utcnow
from .url_parser import extract_video_id

logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Writes, lists and removes history entries scoped to one user."""

    def __init__(self, database: Database, page_size: int = 10):
        self.database = database
        self.page_size = page_size

    async def record(self, user_id: str, entry: HistoryEntryInput) -> SummaryHistory:
        """
        Persist a history entry and bump the owner's usage counter.

        Args:
            user_id: External identity ID of the owner
            entry: Entry fields; videoUrl, videoTitle, contentType and content are required

        Returns:
            The stored SummaryHistory row

        Raises:
            InvalidRequestError: If required fields are missing or the URL has no video ID
            NotFoundError: If the owner has no account
            PersistenceUnavailableError: If the store fails
        """
        missing = entry.missing_fields()
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

        video_id = extract_video_id(entry.video_url)
        if not video_id:
            raise InvalidRequestError("Invalid YouTube URL")

        now = utcnow()
        metadata = {"generatedAt": now.isoformat()}
        metadata.update(entry.metadata)

        try:
            async with self.database.session() as session:
                user = await session.scalar(select(User).where(User.external_identity_id == user_id))
                if user is None:
                    raise NotFoundError("User not found")

                row = SummaryHistory(
                    user_id=user_id,
                    video_id=video_id,
                    video_url=entry.video_url,
                    video_title=entry.video_title,
                    channel_name=entry.channel_name,
                    video_duration=entry.video_duration,
                    video_views=entry.video_views,
                    video_thumbnail=entry.video_thumbnail,
                    content_type=entry.content_type,
                    content=entry.content,
                    analysis=entry.analysis,
                    generation_metadata=metadata,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)

                counter = getattr(User, entry.content_type.usage_field)
                await session.execute(
                    update(User)
                    .where(User.id == user.id)
                    .values({counter: counter + 1, User.last_login_at: now})
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save history for user {user_id}: {e}")
            raise PersistenceUnavailableError("save history", details=str(e))

        logger.info(f"Saved {entry.content_type.value} history entry {row.id} for video {video_id}")
        return row

    async def list(
        self,
        user_id: str,
        content_type: Optional[ContentType] = None,
        video_id: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None
    ) -> Tuple[List[SummaryHistory], int]:
        """
        List a user's entries, newest first.

        Returns:
            Tuple of (entries on the requested page, total matching entries)
        """
        limit = limit or self.page_size
        page = max(page, 1)

        conditions = [SummaryHistory.user_id == user_id]
        if content_type is not None:
            conditions.append(SummaryHistory.content_type == content_type)
        if video_id:
            conditions.append(SummaryHistory.video_id == video_id)

        try:
            async with self.database.session() as session:
                total = await session.scalar(select(func.count(SummaryHistory.id)).where(*conditions))
                result = await session.scalars(
                    select(SummaryHistory)
                    .where(*conditions)
                    .order_by(SummaryHistory.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
                items = list(result)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch history for user {user_id}: {e}")
            raise PersistenceUnavailableError("fetch history", details=str(e))

        return items, total or 0

    async def remove(self, user_id: str, entry_id: str) -> bool:
        """
        Delete an entry owned by ``user_id``.

        Someone else's entry is indistinguishable from a missing one.

        Returns:
            True if an entry was deleted
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(SummaryHistory).where(
                        SummaryHistory.id == entry_id,
                        SummaryHistory.user_id == user_id,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete history entry {entry_id}: {e}")
            raise PersistenceUnavailableError("delete history entry", details=str(e))

        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted history entry {entry_id} for user {user_id}")
        return deleted
