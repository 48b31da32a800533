"""
Tests for the transcript processor module.
"""

import asyncio
from unittest.mock import Mock, patch

import pytest
from youtube_transcript_api._errors import NoTranscriptFound

from youtube_study.error_handling import GENERATION_SUGGESTION, TranscriptUnavailableError
from youtube_study.transcript_processor import TranscriptProcessor

from conftest import make_config, make_transcript_processor, segments


class TestFetchTranscript:
    """Retry and length policy of fetch_transcript."""

    def test_success_on_first_attempt(self, config):
        """A 500-character transcript succeeds on attempt 1 with length 500."""
        text = "a" * 500
        processor = make_transcript_processor(config, text=text)

        result = asyncio.run(processor.fetch_transcript("dQw4w9WgXcQ"))

        assert result.length_chars == 500
        assert result.text == text
        assert processor.youtube_api.fetch.call_count == 1
        assert processor.sleeps == []

    def test_fails_twice_then_succeeds(self, config):
        """Two provider errors, then success on the third attempt with linear backoff."""
        good = segments("word " * 30)
        processor = make_transcript_processor(
            config,
            fetch_side_effect=[Exception("rate limited"), Exception("rate limited"), good],
        )

        result = asyncio.run(processor.fetch_transcript("dQw4w9WgXcQ"))

        assert result.is_usable()
        assert processor.youtube_api.fetch.call_count == 3
        assert processor.sleeps == [1.0, 2.0]
        assert sum(processor.sleeps) <= 3.0

    def test_short_transcript_is_retried_and_reported(self, config):
        processor = make_transcript_processor(config, text="too short")

        with pytest.raises(TranscriptUnavailableError) as exc_info:
            asyncio.run(processor.fetch_transcript("dQw4w9WgXcQ"))

        error = exc_info.value
        assert processor.youtube_api.fetch.call_count == 3
        assert error.transcript_length == len("too short")
        assert "too short or empty (9 characters)" in error.message
        assert error.suggestion == GENERATION_SUGGESTION
        assert error.status_code == 400

    def test_last_error_message_is_surfaced(self, config):
        processor = make_transcript_processor(
            config,
            fetch_side_effect=[Exception("first"), Exception("second"), Exception("Subtitles are disabled")],
        )

        with pytest.raises(TranscriptUnavailableError) as exc_info:
            asyncio.run(processor.fetch_transcript("dQw4w9WgXcQ"))

        assert exc_info.value.message == "Subtitles are disabled"
        assert exc_info.value.to_response()["videoId"] == "dQw4w9WgXcQ"
        assert processor.sleeps == [1.0, 2.0]

    def test_attempts_are_configurable(self):
        config = make_config(transcript_max_attempts=1)
        processor = make_transcript_processor(config, fetch_side_effect=Exception("boom"))

        with pytest.raises(TranscriptUnavailableError):
            asyncio.run(processor.fetch_transcript("dQw4w9WgXcQ"))

        assert processor.youtube_api.fetch.call_count == 1
        assert processor.sleeps == []


class TestFetchRawTranscript:
    """Single-attempt fetch used by diagnostics and chat context."""

    def test_segments_joined_with_single_space(self, config):
        processor = make_transcript_processor(config)
        processor.youtube_api.fetch.return_value = [{"text": "Hello"}, {"text": "world"}, {"text": " again "}]

        result = asyncio.run(processor.fetch_raw_transcript("dQw4w9WgXcQ"))

        assert result.text == "Hello world  again"
        assert result.segment_count == 3

    def test_accepts_snippet_objects(self, config):
        processor = make_transcript_processor(config)
        processor.youtube_api.fetch.return_value = [Mock(text="Snippet"), Mock(text="objects")]

        result = asyncio.run(processor.fetch_raw_transcript("dQw4w9WgXcQ"))

        assert result.text == "Snippet objects"

    def test_short_transcript_is_not_an_error(self, config):
        processor = make_transcript_processor(config, text="hi")

        result = asyncio.run(processor.fetch_raw_transcript("dQw4w9WgXcQ"))

        assert result.length_chars == 2
        assert not result.is_usable()

    def test_falls_back_to_any_language(self, config):
        processor = make_transcript_processor(config)
        processor.youtube_api.fetch.side_effect = NoTranscriptFound("dQw4w9WgXcQ", ["en"], Mock())
        spanish = Mock()
        spanish.fetch.return_value = [{"text": "Hola"}, {"text": "mundo"}]
        processor.youtube_api.list.return_value = [spanish]

        result = asyncio.run(processor.fetch_raw_transcript("dQw4w9WgXcQ"))

        assert result.text == "Hola mundo"
        processor.youtube_api.fetch.assert_called_once_with("dQw4w9WgXcQ", languages=["en", "en-US", "en-GB"])


class TestTranscriptProcessorInit:

    @patch('youtube_study.transcript_processor.WebshareProxyConfig')
    @patch('youtube_study.transcript_processor.YouTubeTranscriptApi')
    def test_proxy_configuration(self, mock_api, mock_proxy_config):
        config = make_config(proxy_username="user", proxy_password="secret")

        TranscriptProcessor(config)

        mock_proxy_config.assert_called_once_with(proxy_username="user", proxy_password="secret")
        mock_api.assert_called_once_with(proxy_config=mock_proxy_config.return_value)

    @patch('youtube_study.transcript_processor.YouTubeTranscriptApi')
    def test_no_proxy_by_default(self, mock_api, config):
        TranscriptProcessor(config)
        mock_api.assert_called_once_with()
