"""
YouTube Data API client wrapper for youtube-study.

This module wraps the YouTube Data API v3 ``videos.list`` call used to enrich a
video with its title, channel, statistics and description. Metadata is an
enhancement, so there is exactly one attempt and no retry: callers fall back to
an unenhanced path when it fails.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.auth.exceptions import GoogleAuthError

from .config import Configuration
from .error_handling import ConfigurationError, VideoNotFoundError, YouTubeAPIError
from .models import VideoMetadata


logger = logging.getLogger(__name__)


class YouTubeClient:
    """
    YouTube Data API v3 client for single-video metadata lookups.

    The discovery-based client is blocking, so requests are executed in the
    default executor.
    """

    PARTS = 'snippet,statistics,contentDetails'

    def __init__(self, config: Configuration, service: Any = None):
        """
        Initialize YouTube client with configuration.

        Args:
            config: Configuration instance with the API key
            service: Optional pre-built API resource (used by tests)
        """
        self.api_key = config.youtube_api_key
        self._service = service

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._service is not None

    def _get_service(self):
        if self._service is None:
            if not self.api_key:
                raise ConfigurationError("YOUTUBE_API_KEY")
            try:
                self._service = build('youtube', 'v3', developerKey=self.api_key, cache_discovery=False)
                logger.info("YouTube API client initialized successfully")
            except GoogleAuthError as e:
                raise YouTubeAPIError(f"YouTube API authentication failed: {e}", status_code=401)
        return self._service

    async def fetch_metadata(self, video_id: str) -> VideoMetadata:
        """
        Fetch metadata for one video.

        Args:
            video_id: YouTube video ID

        Returns:
            VideoMetadata for the video

        Raises:
            ConfigurationError: If no YouTube API key is configured
            VideoNotFoundError: If the API returns no items
            YouTubeAPIError: If the API returns a non-2xx response
        """
        if not self.is_configured:
            raise ConfigurationError("YOUTUBE_API_KEY")

        logger.info(f"Fetching video metadata for {video_id}")
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, self._execute_videos_list, video_id)

        items = response.get('items') or []
        if not items:
            logger.warning(f"Video {video_id} not found or not accessible")
            raise VideoNotFoundError(video_id)

        metadata = self._convert_to_metadata(items[0])
        logger.info(f"Fetched metadata for {video_id}: '{metadata.title}' by {metadata.channel_title}")
        return metadata

    def _execute_videos_list(self, video_id: str) -> Dict[str, Any]:
        service = self._get_service()
        try:
            request = service.videos().list(part=self.PARTS, id=video_id)
            return request.execute()
        except HttpError as e:
            status = e.resp.status if getattr(e, 'resp', None) is not None else 500
            details = self._error_message(e)
            logger.error(f"YouTube API error {status} for {video_id}: {details}")
            raise YouTubeAPIError(details, status_code=int(status))

    @staticmethod
    def _error_message(error: HttpError) -> str:
        """Pull ``error.message`` out of the response body, as the API reports it."""
        try:
            payload = json.loads(error.content.decode('utf-8'))
            return payload.get('error', {}).get('message') or 'Unknown error'
        except (ValueError, AttributeError):
            return str(error) or 'Unknown error'

    @staticmethod
    def _convert_to_metadata(video: Dict[str, Any]) -> VideoMetadata:
        """
        Convert YouTube API video response to a VideoMetadata object.

        Args:
            video: One item of a ``videos.list`` response

        Returns:
            VideoMetadata object
        """
        snippet = video.get('snippet', {})
        statistics = video.get('statistics', {})
        content_details = video.get('contentDetails', {})

        def _count(key: str) -> Optional[int]:
            value = statistics.get(key)
            return int(value) if value is not None else None

        return VideoMetadata(
            video_id=video['id'],
            title=snippet.get('title', ''),
            channel_title=snippet.get('channelTitle', ''),
            published_at=snippet.get('publishedAt'),
            duration=content_details.get('duration'),
            view_count=_count('viewCount'),
            like_count=_count('likeCount'),
            comment_count=_count('commentCount'),
            thumbnails=snippet.get('thumbnails', {}),
            tags=snippet.get('tags') or [],
            description=snippet.get('description', ''),
            category_id=snippet.get('categoryId'),
            default_language=snippet.get('defaultLanguage'),
            default_audio_language=snippet.get('defaultAudioLanguage'),
        )
