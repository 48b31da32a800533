"""
Tests for the error taxonomy, retry policy and detached tasks.
"""

import asyncio

import pytest

from youtube_study.error_handling import (
    AppError, ConfigurationError, DetachedTasks, GENERATION_SUGGESTION, InvalidRequestError,
    PersistenceUnavailableError, RetryConfig, TranscriptUnavailableError, UnauthorizedError,
    calculate_retry_delay
)


class TestErrorResponses:

    def test_details_only_when_present(self):
        assert InvalidRequestError("Message is required").to_response() == {"error": "Message is required"}
        assert AppError("Boom", details="stack").to_response() == {"error": "Boom", "details": "stack"}

    def test_status_codes(self):
        assert InvalidRequestError("x").status_code == 400
        assert UnauthorizedError().status_code == 401
        assert ConfigurationError("OPENAI_API_KEY").status_code == 500
        assert AppError("teapot", status_code=418).status_code == 418

    def test_configuration_error_names_missing_key(self):
        error = ConfigurationError("YOUTUBE_API_KEY")
        assert error.to_response() == {
            "error": "API configuration error",
            "details": "YOUTUBE_API_KEY not found in environment variables",
        }

    def test_persistence_error_message(self):
        assert PersistenceUnavailableError("save history").message == "Failed to save history"

    def test_transcript_unavailable_without_length(self):
        error = TranscriptUnavailableError("dQw4w9WgXcQ")
        body = error.to_response()

        assert "captions/subtitles" in body["error"]
        assert body["transcriptLength"] == 0
        assert body["suggestion"] == GENERATION_SUGGESTION


class TestRetryDelay:

    @pytest.mark.parametrize("attempt,expected", [(0, 0.0), (1, 1.0), (2, 2.0), (3, 3.0)])
    def test_linear_backoff(self, attempt, expected):
        assert calculate_retry_delay(attempt, RetryConfig()) == expected

    def test_capped_at_max_delay(self):
        assert calculate_retry_delay(10, RetryConfig(base_delay=5.0, max_delay=12.0)) == 12.0


class TestDetachedTasks:

    def test_failures_are_recorded_not_raised(self):
        detached = DetachedTasks()

        async def failing():
            raise RuntimeError("database down")

        async def scenario():
            detached.spawn(failing, "save history")
            assert detached.pending == 1
            await detached.drain()

        asyncio.run(scenario())

        assert detached.pending == 0
        assert len(detached.errors) == 1
        assert detached.errors[0][0] == "save history"
        assert str(detached.errors[0][1]) == "database down"

    def test_caller_does_not_wait(self):
        detached = DetachedTasks()
        events = []

        async def slow():
            await asyncio.sleep(0)
            events.append("saved")

        async def scenario():
            detached.spawn(slow, "slow save")
            events.append("responded")
            await detached.drain()

        asyncio.run(scenario())

        assert events == ["responded", "saved"]
        assert detached.errors == []
