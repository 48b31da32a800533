"""
SQLAlchemy persistence for youtube-study.

One ``AsyncEngine`` per process, created lazily on first use and reused for
every request. Tables:

- ``users``: one row per identity-provider account, with usage counters
- ``summary_history``: generated artifacts, notes and chat exchanges per user
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, JSON, String, Text, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .models import ContentType, Plan, Preferences, Usage, utcnow

logger = logging.getLogger(__name__)


def generate_id() -> str:
    return str(uuid.uuid4())


def first_of_next_month(now: Optional[datetime] = None) -> datetime:
    """Start of the next calendar month, when monthly usage resets."""
    now = now or utcnow()
    if now.month == 12:
        return now.replace(year=now.year + 1, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(month=now.month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    external_identity_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(256), unique=True, nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    plan: Mapped[Plan] = mapped_column(Enum(Plan, values_callable=_enum_values), default=Plan.FREE)

    study_guides: Mapped[int] = mapped_column(Integer, default=0)
    briefing_docs: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[int] = mapped_column(Integer, default=0)
    chat_messages: Mapped[int] = mapped_column(Integer, default=0)
    monthly_reset_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=first_of_next_month)

    preferences: Mapped[Dict[str, Any]] = mapped_column(JSON, default=lambda: Preferences().model_dump(mode="json"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_login_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def usage(self) -> Usage:
        return Usage(
            study_guides=self.study_guides or 0,
            briefing_docs=self.briefing_docs or 0,
            notes=self.notes or 0,
            chat_messages=self.chat_messages or 0,
            monthly_reset_at=as_utc(self.monthly_reset_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "externalIdentityId": self.external_identity_id,
            "email": self.email or "",
            "firstName": self.first_name,
            "lastName": self.last_name,
            "profileImage": self.profile_image,
            "plan": self.plan.value if self.plan else Plan.FREE.value,
            "usage": self.usage.to_response(),
            "preferences": self.preferences or {},
            "createdAt": isoformat_utc(self.created_at),
            "updatedAt": isoformat_utc(self.updated_at),
            "lastLoginAt": isoformat_utc(self.last_login_at),
        }


class SummaryHistory(Base):
    __tablename__ = "summary_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.external_identity_id"))
    video_id: Mapped[str] = mapped_column(String(11))
    video_url: Mapped[str] = mapped_column(String(2048))
    video_title: Mapped[str] = mapped_column(String(512))
    channel_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    video_duration: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    video_views: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    video_thumbnail: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    content_type: Mapped[ContentType] = mapped_column(Enum(ContentType, values_callable=_enum_values))
    content: Mapped[str] = mapped_column(Text)
    analysis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generation_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_history_user_created", "user_id", "created_at"),
        Index("ix_history_user_type_created", "user_id", "content_type", "created_at"),
        Index("ix_history_video_user", "video_id", "user_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "videoId": self.video_id,
            "videoUrl": self.video_url,
            "videoTitle": self.video_title,
            "channelName": self.channel_name,
            "videoDuration": self.video_duration,
            "videoViews": self.video_views,
            "videoThumbnail": self.video_thumbnail,
            "contentType": self.content_type.value,
            "content": self.content,
            "analysis": self.analysis,
            "metadata": self.generation_metadata or {},
            "createdAt": isoformat_utc(self.created_at),
            "updatedAt": isoformat_utc(self.updated_at),
        }


class Database:
    """
    Lazily connected database handle.

    Nothing touches the network until the first session is opened, so the
    service starts even when the database is down; reconnecting is left to the
    engine's pool.
    """

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.url = url
        self.echo = echo
        self._engine = engine
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            logger.info(f"Creating database engine for {self.url.split('://', 1)[0]}")
            self._engine = create_async_engine(self.url, echo=self.echo, pool_pre_ping=True)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session; rolls back if the block raises."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def init_models(self) -> None:
        """Create missing tables and indexes."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready")

    async def ping(self) -> bool:
        """Return True if a trivial query succeeds."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
