"""
Tests for the generation fallback chain and mock content.
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from youtube_study import mock_content
from youtube_study.content_generator import ContentGenerator
from youtube_study.error_handling import (
    ConfigurationError, InvalidRequestError, TranscriptUnavailableError, UpstreamError
)
from youtube_study.fallback_chain import (
    EnhancedStrategy, FallbackChain, GenerationOutcome, GenerationStrategy, MockStrategy,
    StandardStrategy, build_default_chain
)
from youtube_study.models import (
    ContentType, GeneratedArtifact, GenerationRequest, GeneratorPath, VideoMetadata, VideoReference
)
from youtube_study.youtube_client import YouTubeClient

from conftest import SAMPLE_TRANSCRIPT_TEXT, make_config, make_openai_client, make_transcript_processor, segments


def make_request(content_type=ContentType.STUDY_GUIDE) -> GenerationRequest:
    return GenerationRequest(
        video_ref=VideoReference(url="https://www.youtube.com/watch?v=dQw4w9WgXcQ", id="dQw4w9WgXcQ"),
        content_type=content_type,
    )


def artifact_for(path: GeneratorPath, content: str) -> GeneratedArtifact:
    return GeneratedArtifact(
        content=content,
        content_type=ContentType.STUDY_GUIDE,
        video_id="dQw4w9WgXcQ",
        generator_path=path,
        transcript_length_chars=500,
    )


def stub_strategy(path: GeneratorPath, artifact=None, error=None) -> Mock:
    strategy = Mock(spec=GenerationStrategy)
    strategy.attempt = AsyncMock(return_value=GenerationOutcome(path=path, artifact=artifact, error=error))
    return strategy


class TestFallbackChain:
    """Ordering and termination of FallbackChain.run."""

    def test_standard_wins_and_mock_is_never_invoked(self):
        enhanced = stub_strategy(GeneratorPath.ENHANCED, error=UpstreamError("metadata failed"))
        standard = stub_strategy(GeneratorPath.STANDARD, artifact=artifact_for(GeneratorPath.STANDARD, "standard"))
        mock = stub_strategy(GeneratorPath.MOCK, artifact=artifact_for(GeneratorPath.MOCK, "mock"))

        result = asyncio.run(FallbackChain([enhanced, standard, mock]).run(make_request()))

        assert result.artifact.content == "standard"
        assert result.attempted_paths == [GeneratorPath.ENHANCED, GeneratorPath.STANDARD]
        assert result.attempts[0][1] == "metadata failed"
        mock.attempt.assert_not_called()

    def test_first_success_short_circuits(self):
        enhanced = stub_strategy(GeneratorPath.ENHANCED, artifact=artifact_for(GeneratorPath.ENHANCED, "best"))
        standard = stub_strategy(GeneratorPath.STANDARD, artifact=artifact_for(GeneratorPath.STANDARD, "ok"))

        result = asyncio.run(FallbackChain([enhanced, standard]).run(make_request()))

        assert result.artifact.generator_path == GeneratorPath.ENHANCED
        standard.attempt.assert_not_called()

    def test_all_failures_raise_last_error(self):
        last = UpstreamError("mock failed")
        chain = FallbackChain([
            stub_strategy(GeneratorPath.ENHANCED, error=UpstreamError("enhanced failed")),
            stub_strategy(GeneratorPath.STANDARD, error=ConfigurationError("OPENAI_API_KEY")),
            stub_strategy(GeneratorPath.MOCK, error=last),
        ])

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(chain.run(make_request()))

        assert exc_info.value is last

    def test_transcript_failure_falls_through_to_next_path(self):
        missing = TranscriptUnavailableError("dQw4w9WgXcQ", last_error="throttled")
        enhanced = stub_strategy(GeneratorPath.ENHANCED, error=missing)
        standard = stub_strategy(GeneratorPath.STANDARD, artifact=artifact_for(GeneratorPath.STANDARD, "x"))

        result = asyncio.run(FallbackChain([enhanced, standard]).run(make_request()))

        assert result.artifact.generator_path == GeneratorPath.STANDARD
        assert result.attempts[0] == (GeneratorPath.ENHANCED, "throttled")

    def test_transcript_failure_on_every_path_keeps_suggestion(self):
        last = TranscriptUnavailableError("dQw4w9WgXcQ", transcript_length=12)
        enhanced = stub_strategy(GeneratorPath.ENHANCED, error=TranscriptUnavailableError("dQw4w9WgXcQ"))
        standard = stub_strategy(GeneratorPath.STANDARD, error=TranscriptUnavailableError("dQw4w9WgXcQ"))
        mock = stub_strategy(GeneratorPath.MOCK, error=last)

        with pytest.raises(TranscriptUnavailableError) as exc_info:
            asyncio.run(FallbackChain([enhanced, standard, mock]).run(make_request()))

        assert exc_info.value is last
        assert exc_info.value.suggestion
        mock.attempt.assert_awaited_once()

    def test_requires_strategies(self):
        with pytest.raises(ValueError):
            FallbackChain([])


class TestStrategies:
    """Real strategies over stubbed providers."""

    def test_default_chain_degrades_to_mock_without_keys(self, config):
        transcripts = make_transcript_processor(config)
        chain = build_default_chain(transcripts, YouTubeClient(config), ContentGenerator(config))

        result = asyncio.run(chain.run(make_request()))

        assert result.artifact.generator_path == GeneratorPath.MOCK
        assert result.attempted_paths == [GeneratorPath.ENHANCED, GeneratorPath.STANDARD, GeneratorPath.MOCK]
        assert "# Study Guide" in result.artifact.content

    def test_enhanced_uses_metadata_prompt(self, config):
        transcripts = make_transcript_processor(config)
        youtube = Mock(spec=YouTubeClient)
        youtube.fetch_metadata = AsyncMock(return_value=VideoMetadata(video_id="dQw4w9WgXcQ", title="Lecture"))
        client = make_openai_client("# Enhanced guide")
        generator = ContentGenerator(make_config(openai_api_key="sk-test"), client=client)

        outcome = asyncio.run(EnhancedStrategy(transcripts, youtube, generator).attempt(make_request()))

        assert outcome.succeeded
        assert outcome.artifact.content == "# Enhanced guide"
        assert outcome.artifact.metadata.title == "Lecture"
        assert outcome.artifact.processing_time_ms is not None
        prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Video Title: Lecture" in prompt

    def test_standard_recovers_after_enhanced_transcript_failures(self, config):
        transcripts = make_transcript_processor(
            config,
            fetch_side_effect=[Exception("throttled")] * 3 + [segments(SAMPLE_TRANSCRIPT_TEXT)],
        )
        youtube = Mock(spec=YouTubeClient)
        youtube.fetch_metadata = AsyncMock(return_value=VideoMetadata(video_id="dQw4w9WgXcQ", title="Lecture"))
        generator = ContentGenerator(make_config(openai_api_key="sk-test"), client=make_openai_client("guide"))

        result = asyncio.run(build_default_chain(transcripts, youtube, generator).run(make_request()))

        assert result.artifact.generator_path == GeneratorPath.STANDARD
        assert result.attempted_paths == [GeneratorPath.ENHANCED, GeneratorPath.STANDARD]
        assert transcripts.youtube_api.fetch.call_count == 4

    def test_standard_reports_transcript_length(self, config):
        transcripts = make_transcript_processor(config)
        generator = ContentGenerator(make_config(openai_api_key="sk-test"), client=make_openai_client("guide"))

        outcome = asyncio.run(StandardStrategy(transcripts, generator).attempt(make_request()))

        assert outcome.artifact.transcript_length_chars == len(SAMPLE_TRANSCRIPT_TEXT)
        assert outcome.artifact.metadata is None

    def test_mock_never_calls_llm(self, config):
        transcripts = make_transcript_processor(config)

        outcome = asyncio.run(MockStrategy(transcripts).attempt(make_request(ContentType.BRIEFING_DOC)))

        assert outcome.artifact.generator_path == GeneratorPath.MOCK
        assert "# Professional Briefing Document" in outcome.artifact.content
        assert outcome.artifact.to_response()["note"]

    def test_strategy_converts_errors_to_outcomes(self, config):
        transcripts = make_transcript_processor(config, fetch_side_effect=Exception("no captions"))

        outcome = asyncio.run(MockStrategy(transcripts).attempt(make_request()))

        assert not outcome.succeeded
        assert isinstance(outcome.error, TranscriptUnavailableError)


class TestMockContent:
    """Templated mock content."""

    def test_study_guide_statistics(self):
        transcript = "s" * 1234
        content = mock_content.render(ContentType.STUDY_GUIDE, transcript)

        assert "(1234 characters)" in content
        assert "covers 12 major topic areas" in content
        assert f"**Primary Subject**: {'s' * 100}..." in content

    def test_briefing_doc_statistics(self):
        transcript = "b" * 1234
        content = mock_content.render(ContentType.BRIEFING_DOC, transcript, today=date(2024, 5, 1))

        assert "reveals 24 distinct topic areas" in content
        assert f"**Strategic Overview**: {'b' * 150}..." in content
        assert content.endswith("2024-05-01*")

    def test_rejects_other_types(self):
        with pytest.raises(InvalidRequestError):
            mock_content.render(ContentType.CHAT, "text")
