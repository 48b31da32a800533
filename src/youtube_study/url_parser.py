"""
YouTube URL parsing and validation.
"""

import re
from typing import List, Optional

from .error_handling import InvalidRequestError


# Order matters: the first pattern that matches wins.
YOUTUBE_URL_PATTERNS: List[re.Pattern] = [
    re.compile(r'(?:youtube\.com/watch\?v=)([a-zA-Z0-9_-]{11})'),
    re.compile(r'(?:youtube\.com/embed/)([a-zA-Z0-9_-]{11})'),
    re.compile(r'(?:youtu\.be/)([a-zA-Z0-9_-]{11})'),
    re.compile(r'(?:youtube\.com/v/)([a-zA-Z0-9_-]{11})'),
    re.compile(r'(?:youtube\.com/.*[?&]v=)([a-zA-Z0-9_-]{11})'),
]


def extract_video_id(url: Optional[str]) -> Optional[str]:
    """
    Extract the 11-character video ID from a YouTube URL.

    Video IDs are case-sensitive and are returned exactly as they appear.
    Returns None if no supported URL shape matches.
    """
    if not url:
        return None

    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    return None


def validate_youtube_url(url: Optional[str]) -> str:
    """
    Validate a YouTube URL and return the video ID.

    Raises:
        InvalidRequestError: If the URL is missing or not a supported YouTube URL
    """
    if not url or not url.strip():
        raise InvalidRequestError("YouTube URL is required")
    video_id = extract_video_id(url.strip())
    if not video_id:
        raise InvalidRequestError("Invalid YouTube URL format. Please use a valid YouTube URL.")
    return video_id


def is_youtube_url(url: str) -> bool:
    """Quick check if a string looks like a YouTube URL."""
    return extract_video_id(url) is not None
