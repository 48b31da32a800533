"""
Data models for the youtube-study system.

This module defines the domain objects passed between the transcript, metadata,
generation and history components. Persisted tables live in ``database``.
"""

from enum import Enum
from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator
import re


VIDEO_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{11}$')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentType(str, Enum):
    """Kinds of artifact a history entry can hold."""
    STUDY_GUIDE = "study-guide"
    BRIEFING_DOC = "briefing-doc"
    NOTE = "note"
    CHAT = "chat"

    @property
    def usage_field(self) -> str:
        """Name of the UserAccount usage counter this content type increments."""
        return {
            ContentType.STUDY_GUIDE: "study_guides",
            ContentType.BRIEFING_DOC: "briefing_docs",
            ContentType.NOTE: "notes",
            ContentType.CHAT: "chat_messages",
        }[self]


GENERATED_CONTENT_TYPES = (ContentType.STUDY_GUIDE, ContentType.BRIEFING_DOC)


class GeneratorPath(str, Enum):
    """Generation strategies in descending quality order."""
    ENHANCED = "enhanced"
    STANDARD = "standard"
    MOCK = "mock"


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class VideoReference(BaseModel):
    """
    A parsed YouTube URL, optionally enriched with metadata.

    Identity is the 11-character ``id``; instances are immutable once created.
    """
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="URL as submitted by the user")
    id: str = Field(..., description="YouTube video ID")
    title: Optional[str] = Field(None, description="Video title")
    channel_name: Optional[str] = Field(None, description="Channel name")
    duration_iso8601: Optional[str] = Field(None, description="Duration, e.g. PT4M13S")
    view_count: Optional[int] = Field(None, ge=0)
    like_count: Optional[int] = Field(None, ge=0)
    thumbnail_url: Optional[str] = None

    @field_validator('id')
    @classmethod
    def validate_video_id(cls, v):
        """Validate YouTube video ID format."""
        if not v or not VIDEO_ID_PATTERN.match(v):
            raise ValueError('Video ID must be 11 characters from [A-Za-z0-9_-]')
        return v


class VideoMetadata(BaseModel):
    """Metadata returned by the YouTube Data API for one video."""
    video_id: str
    title: str
    channel_title: str = ""
    published_at: Optional[str] = None
    duration: Optional[str] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    comment_count: Optional[int] = None
    thumbnails: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    description: str = ""
    category_id: Optional[str] = None
    default_language: Optional[str] = None
    default_audio_language: Optional[str] = None

    @property
    def thumbnail_url(self) -> Optional[str]:
        """Best available thumbnail: high, then default."""
        for size in ("high", "default"):
            thumb = self.thumbnails.get(size)
            if thumb and thumb.get("url"):
                return thumb["url"]
        return None

    def to_video_reference(self, url: str) -> VideoReference:
        return VideoReference(
            url=url,
            id=self.video_id,
            title=self.title,
            channel_name=self.channel_title or None,
            duration_iso8601=self.duration,
            view_count=self.view_count,
            like_count=self.like_count,
            thumbnail_url=self.thumbnail_url,
        )

    def to_response(self) -> Dict[str, Any]:
        """Camel-cased summary used in generation responses."""
        return {
            "title": self.title,
            "channelTitle": self.channel_title,
            "publishedAt": self.published_at,
            "duration": self.duration,
            "viewCount": self.view_count,
            "likeCount": self.like_count,
            "thumbnails": self.thumbnails,
        }

    def to_full_response(self) -> Dict[str, Any]:
        """Every field, camel-cased, as reported by the metadata diagnostic."""
        body = self.to_response()
        body.update({
            "videoId": self.video_id,
            "description": self.description,
            "commentCount": self.comment_count,
            "tags": self.tags,
            "categoryId": self.category_id,
            "defaultLanguage": self.default_language,
            "defaultAudioLanguage": self.default_audio_language,
        })
        return body


class TranscriptResult(BaseModel):
    """A fetched transcript. Transient: only its length is ever persisted."""
    model_config = ConfigDict(frozen=True)

    text: str
    length_chars: int = Field(..., ge=0)
    segment_count: int = Field(..., ge=0)

    @classmethod
    def from_segments(cls, segments: List[str]) -> 'TranscriptResult':
        """Join caption segments with single spaces and trim."""
        text = ' '.join(segments).strip()
        return cls(text=text, length_chars=len(text), segment_count=len(segments))

    def is_usable(self, min_length: int = 50) -> bool:
        return self.length_chars >= min_length


class GenerationRequest(BaseModel):
    """One request to produce a study guide or briefing document."""
    model_config = ConfigDict(frozen=True)

    video_ref: VideoReference
    content_type: ContentType
    requested_at: datetime = Field(default_factory=utcnow)

    @field_validator('content_type')
    @classmethod
    def validate_generated_type(cls, v):
        if v not in GENERATED_CONTENT_TYPES:
            raise ValueError('Invalid type. Must be "study-guide" or "briefing-doc"')
        return v


class GeneratedArtifact(BaseModel):
    """Output of the first generation path that succeeded."""
    model_config = ConfigDict(frozen=True)

    content: str
    content_type: ContentType
    video_id: str
    generator_path: GeneratorPath
    transcript_length_chars: int = Field(..., ge=0)
    processing_time_ms: Optional[int] = Field(None, ge=0)
    metadata: Optional[VideoMetadata] = None

    def to_response(self, history_queued: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "content": self.content,
            "videoId": self.video_id,
            "type": self.content_type.value,
            "transcriptLength": self.transcript_length_chars,
            "generatorPath": self.generator_path.value,
            "enhanced": self.generator_path == GeneratorPath.ENHANCED,
            "historyQueued": history_queued,
        }
        if self.metadata is not None:
            body["videoMetadata"] = self.metadata.to_response()
        if self.processing_time_ms is not None:
            body["processingTime"] = self.processing_time_ms
        if self.generator_path == GeneratorPath.MOCK:
            body["note"] = "This is a templated response generated while the LLM provider is unavailable"
        return body


class Identity(BaseModel):
    """An authenticated user as reported by the identity provider."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    email: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image: Optional[str] = None


class HistoryEntryInput(BaseModel):
    """
    Fields accepted when recording a history entry.

    The four required fields are optional here so the recorder can report every
    missing one in a single validation error.
    """
    video_url: Optional[str] = None
    video_title: Optional[str] = None
    content_type: Optional[ContentType] = None
    content: Optional[str] = None
    channel_name: Optional[str] = None
    video_duration: Optional[str] = None
    video_views: Optional[str] = None
    video_thumbnail: Optional[str] = None
    analysis: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('video_views', mode='before')
    @classmethod
    def coerce_views(cls, v):
        return str(v) if v is not None else None

    def missing_fields(self) -> List[str]:
        required = {
            'videoUrl': self.video_url,
            'videoTitle': self.video_title,
            'contentType': self.content_type,
            'content': self.content,
        }
        return [name for name, value in required.items() if not value]


class Usage(BaseModel):
    study_guides: int = 0
    briefing_docs: int = 0
    notes: int = 0
    chat_messages: int = 0
    monthly_reset_at: Optional[datetime] = None

    def to_response(self) -> Dict[str, Any]:
        return {
            "studyGuides": self.study_guides,
            "briefingDocs": self.briefing_docs,
            "notes": self.notes,
            "chatMessages": self.chat_messages,
            "monthlyReset": self.monthly_reset_at.isoformat() if self.monthly_reset_at else None,
        }


class Preferences(BaseModel):
    theme: Theme = Theme.SYSTEM
    language: str = "en"
    notifications: bool = True
