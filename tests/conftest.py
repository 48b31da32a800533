"""
Shared fixtures for the youtube-study tests.
"""

from typing import List
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from youtube_study.config import Configuration
from youtube_study.content_generator import ContentGenerator
from youtube_study.database import Database
from youtube_study.transcript_processor import TranscriptProcessor


SAMPLE_TRANSCRIPT_TEXT = (
    "Welcome to this lecture on photosynthesis. Plants convert light energy into chemical energy. "
    "The light dependent reactions happen in the thylakoid membranes."
)


def make_config(**overrides) -> Configuration:
    """Configuration isolated from the developer's environment."""
    values = dict(
        openai_api_key=None,
        youtube_api_key=None,
        identity_provider_secret=None,
        database_url="sqlite+aiosqlite://",
        proxy_username=None,
        proxy_password=None,
        log_file=None,
    )
    values.update(overrides)
    return Configuration(**values)


def make_database() -> Database:
    """In-memory database whose single connection is shared by every session."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    return Database("sqlite+aiosqlite://", engine=engine)


def segments(text: str) -> List[dict]:
    return [{"text": word, "start": float(i), "duration": 1.0} for i, word in enumerate(text.split(" "))]


def make_transcript_processor(config: Configuration, fetch_side_effect=None, text: str = SAMPLE_TRANSCRIPT_TEXT):
    """TranscriptProcessor over a stub client; sleeps are recorded, not awaited."""
    youtube_api = Mock()
    if fetch_side_effect is not None:
        youtube_api.fetch.side_effect = fetch_side_effect
    else:
        youtube_api.fetch.return_value = segments(text)
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    processor = TranscriptProcessor(config, youtube_api=youtube_api, sleep=fake_sleep)
    processor.sleeps = sleeps
    return processor


def completion(content: str) -> Mock:
    """Shape of an OpenAI chat completion response."""
    return Mock(choices=[Mock(message=Mock(content=content))])


def make_openai_client(content: str = "# Generated Study Guide") -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion(content))
    return client


@pytest.fixture
def config() -> Configuration:
    return make_config()


@pytest.fixture
def database() -> Database:
    return make_database()


@pytest.fixture
def openai_client() -> MagicMock:
    return make_openai_client()


@pytest.fixture
def generator(openai_client) -> ContentGenerator:
    return ContentGenerator(make_config(openai_api_key="sk-test"), client=openai_client)
