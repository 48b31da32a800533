"""
HTTP request bodies.

Required fields are declared optional so handlers can answer with the exact
message for whichever one is missing.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from .models import ContentType, HistoryEntryInput


class RequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GenerateBody(RequestBody):
    url: Optional[str] = None
    type: Optional[str] = None
    video_title: Optional[str] = Field(None, alias="videoTitle")


class VideoUrlBody(RequestBody):
    url: Optional[str] = None


class ChatBody(RequestBody):
    message: Optional[str] = None
    video_url: Optional[str] = Field(None, alias="videoUrl")
    video_title: Optional[str] = Field(None, alias="videoTitle")


class NoteBody(RequestBody):
    note: Optional[str] = None
    video_url: Optional[str] = Field(None, alias="videoUrl")
    video_title: Optional[str] = Field(None, alias="videoTitle")
    type: str = "save"


class SpeechBody(RequestBody):
    content: Optional[str] = None
    title: Optional[str] = None
    voice: str = "default"
    speed: float = Field(1.0, gt=0, le=4.0)


class HistoryCreateBody(RequestBody):
    video_url: Optional[str] = Field(None, alias="videoUrl")
    video_title: Optional[str] = Field(None, alias="videoTitle")
    content_type: Optional[ContentType] = Field(None, alias="contentType")
    content: Optional[str] = None
    channel_name: Optional[str] = Field(None, alias="channelName")
    video_duration: Optional[str] = Field(None, alias="videoDuration")
    video_views: Optional[Any] = Field(None, alias="videoViews")
    video_thumbnail: Optional[str] = Field(None, alias="videoThumbnail")
    analysis: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_entry(self) -> HistoryEntryInput:
        return HistoryEntryInput(**self.model_dump())


class AccountUpdateBody(RequestBody):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    profile_image: Optional[str] = Field(None, alias="profileImage")
    preferences: Optional[Dict[str, Any]] = None

    def to_changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent, camel-cased."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class StatsBody(RequestBody):
    action: Optional[str] = None
