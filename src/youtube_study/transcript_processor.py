"""
Transcript retrieval for the youtube-study system.

This module fetches YouTube captions with the youtube-transcript-api library.
Caption services throttle and some videos have no captions at all, so fetching
is retried a bounded number of times with linear backoff before giving up.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional
from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api.proxies import WebshareProxyConfig
from youtube_transcript_api._errors import NoTranscriptFound

from .config import Configuration
from .error_handling import RetryConfig, TranscriptUnavailableError, calculate_retry_delay
from .models import TranscriptResult

# Configure logging
logger = logging.getLogger(__name__)


SleepFunc = Callable[[float], Awaitable[Any]]


class TranscriptProcessor:
    """
    Fetches transcripts with a minimum-length policy and bounded retries.

    The underlying client is blocking, so each call runs in the default executor
    and never stalls the event loop serving other requests.
    """

    def __init__(
        self,
        config: Configuration,
        youtube_api: Optional[YouTubeTranscriptApi] = None,
        sleep: SleepFunc = asyncio.sleep
    ):
        """
        Initialize the transcript processor.

        Args:
            config: Configuration with retry policy, languages and proxy settings
            youtube_api: Optional pre-built transcript client (test doubles go here)
            sleep: Awaitable sleep used between attempts
        """
        self.preferred_languages = list(config.transcript_languages)
        self.min_length = config.transcript_min_length
        self.retry_config = RetryConfig(
            max_attempts=config.transcript_max_attempts,
            base_delay=config.transcript_retry_delay
        )
        self._sleep = sleep

        if youtube_api is not None:
            self.youtube_api = youtube_api
        elif config.proxy_username and config.proxy_password:
            self.youtube_api = YouTubeTranscriptApi(
                proxy_config=WebshareProxyConfig(
                    proxy_username=config.proxy_username,
                    proxy_password=config.proxy_password,
                )
            )
        else:
            self.youtube_api = YouTubeTranscriptApi()

    async def fetch_transcript(self, video_id: str) -> TranscriptResult:
        """
        Fetch a usable transcript, retrying on provider errors and short results.

        Args:
            video_id: YouTube video ID

        Returns:
            TranscriptResult with at least ``min_length`` characters

        Raises:
            TranscriptUnavailableError: After the final attempt fails
        """
        max_attempts = self.retry_config.max_attempts
        last_length = 0
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Fetching transcript for {video_id} (attempt {attempt}/{max_attempts})")
            try:
                result = await self.fetch_raw_transcript(video_id)
                last_length = result.length_chars
                if result.is_usable(self.min_length):
                    logger.info(f"Transcript fetched for {video_id}: {result.length_chars} characters, "
                                f"{result.segment_count} segments")
                    return result
                last_error = None
                logger.warning(f"Transcript too short for {video_id} ({result.length_chars} chars)")
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.warning(f"Error fetching transcript for {video_id} "
                               f"(attempt {attempt}/{max_attempts}): {last_error}")

            if attempt < max_attempts:
                delay = calculate_retry_delay(attempt, self.retry_config)
                logger.debug(f"Retrying transcript fetch for {video_id} in {delay:.1f}s")
                await self._sleep(delay)

        logger.error(f"No usable transcript for {video_id} after {max_attempts} attempts")
        raise TranscriptUnavailableError(video_id, transcript_length=last_length, last_error=last_error)

    async def fetch_raw_transcript(self, video_id: str) -> TranscriptResult:
        """
        Single attempt with no length policy.

        Used directly by the diagnostic endpoint and as best-effort context
        for chat and note analysis.
        """
        loop = asyncio.get_running_loop()
        segments = await loop.run_in_executor(None, self._fetch_segments, video_id)
        return TranscriptResult.from_segments(segments)

    def _fetch_segments(self, video_id: str) -> List[str]:
        """Blocking fetch: preferred languages first, then any available transcript."""
        try:
            fetched = self.youtube_api.fetch(video_id, languages=self.preferred_languages)
        except NoTranscriptFound:
            logger.debug(f"No transcript in {self.preferred_languages} for {video_id}, trying any language")
            transcript_list = self.youtube_api.list(video_id)
            first_available = next(iter(transcript_list), None)
            if first_available is None:
                raise
            fetched = first_available.fetch()

        return [self._segment_text(segment) for segment in fetched]

    @staticmethod
    def _segment_text(segment: Any) -> str:
        if isinstance(segment, dict):
            return segment.get('text', '') or ''
        return getattr(segment, 'text', '') or ''
