"""
Error taxonomy, retry policy and detached side-effect tasks for youtube-study.

Every failure the HTTP layer can report is an ``AppError`` carrying its status
code, a plain-language message and optional upstream details. Side effects such
as history saves run as detached tasks whose failures are logged, never raised.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)


GENERATION_SUGGESTION = "Try again in a few moments, or try a different video with captions."


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> Dict[str, Any]:
        """Render the error as the ``{error, details?}`` response body."""
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequestError(AppError):
    """Missing or malformed input."""
    status_code = 400


class UnauthorizedError(AppError):
    """No authenticated identity on an identity-scoped endpoint."""
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[str] = None):
        super().__init__(message, details)


class NotFoundError(AppError):
    """Video absent from the provider, or a record absent or not owned."""
    status_code = 404


class VideoNotFoundError(NotFoundError):
    """The metadata provider returned an empty result set."""

    def __init__(self, video_id: str):
        super().__init__("Video not found or not accessible")
        self.video_id = video_id

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["videoId"] = self.video_id
        return body


class UpstreamError(AppError):
    """A transcript, metadata or LLM provider call failed."""
    status_code = 500


class YouTubeAPIError(UpstreamError):
    """The YouTube Data API returned a non-2xx response."""

    def __init__(self, details: str, status_code: int = 500):
        super().__init__("Failed to fetch video metadata from YouTube API", details=details,
                         status_code=status_code)


class TranscriptUnavailableError(UpstreamError):
    """
    No usable transcript after every attempt.

    This is the one failure with no further fallback, so it carries the last
    observed length and a remediation suggestion for the end user.
    """
    status_code = 400

    def __init__(
        self,
        video_id: str,
        transcript_length: int = 0,
        last_error: Optional[str] = None,
        suggestion: str = GENERATION_SUGGESTION
    ):
        if last_error:
            message = last_error
        elif transcript_length > 0:
            message = (f"Video transcript is too short or empty ({transcript_length} characters). "
                       "This video may not have sufficient captions available.")
        else:
            message = ("Could not fetch video transcript. Please ensure the video has "
                       "captions/subtitles available and is publicly accessible.")
        super().__init__(message)
        self.video_id = video_id
        self.transcript_length = transcript_length
        self.last_error = last_error
        self.suggestion = suggestion

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body.update({
            "transcriptLength": self.transcript_length,
            "videoId": self.video_id,
            "suggestion": self.suggestion,
        })
        return body


class ConfigurationError(AppError):
    """A required API credential is not configured."""
    status_code = 500

    def __init__(self, missing: str):
        super().__init__("API configuration error", details=f"{missing} not found in environment variables")
        self.missing = missing


class PersistenceUnavailableError(AppError):
    """The persistence layer could not be reached or rejected the operation."""
    status_code = 500

    def __init__(self, operation: str, details: Optional[str] = None):
        super().__init__(f"Failed to {operation}", details=details)
        self.operation = operation


class RetryConfig:
    """Configuration for linear-backoff retries."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay


def calculate_retry_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the wait after a failed attempt using linear backoff.

    Args:
        attempt: The attempt that just failed (1-based)
        config: Retry configuration

    Returns:
        Delay in seconds (``attempt * base_delay``, capped at ``max_delay``)
    """
    if attempt < 1:
        return 0.0
    return min(attempt * config.base_delay, config.max_delay)


class DetachedTasks:
    """
    Runs best-effort side effects without making the caller wait for them.

    Failures are logged and recorded in ``errors``; they never reach the request
    that spawned the task. ``drain`` waits for whatever is still pending, which
    the application does on shutdown.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.errors: list = []

    def spawn(self, factory: Callable[[], Awaitable[Any]], description: str) -> asyncio.Task:
        """
        Schedule ``factory()`` on the running loop and return immediately.

        Args:
            factory: Zero-argument callable returning the awaitable to run
            description: Human-readable label used in log lines
        """
        async def _runner():
            try:
                return await factory()
            except Exception as e:
                logger.error(f"Detached task '{description}' failed: {e}")
                self.errors.append((description, e))
                return None

        task = asyncio.get_running_loop().create_task(_runner())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every pending detached task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
