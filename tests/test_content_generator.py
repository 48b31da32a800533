"""
Tests for the OpenAI content generator.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from youtube_study.content_generator import ContentGenerator
from youtube_study.error_handling import ConfigurationError, InvalidRequestError, UpstreamError
from youtube_study.models import ContentType, VideoMetadata

from conftest import make_config, make_openai_client


@pytest.fixture
def metadata():
    return VideoMetadata(
        video_id="dQw4w9WgXcQ",
        title="Photosynthesis Explained",
        channel_title="Science Channel",
        published_at="2024-01-15T10:00:00Z",
        duration="PT12M30S",
        view_count=15000,
        like_count=1200,
        tags=["biology", "plants"],
        description="d" * 900,
    )


def numbered_items(prompt: str) -> int:
    return sum(1 for line in prompt.splitlines() if line[:1].isdigit() and ". **" in line)


class TestBuildPrompt:
    """Prompt templating."""

    def test_enhanced_study_guide_has_seven_sections(self, generator, metadata):
        prompt = generator.build_prompt(ContentType.STUDY_GUIDE, "transcript text", metadata)
        assert numbered_items(prompt) == 7
        assert "**Video Overview**" in prompt
        assert "VIDEO INFORMATION:" in prompt

    def test_enhanced_briefing_doc_has_eight_sections(self, generator, metadata):
        prompt = generator.build_prompt(ContentType.BRIEFING_DOC, "transcript text", metadata)
        assert numbered_items(prompt) == 8
        assert "**Appendix**" in prompt

    @pytest.mark.parametrize("content_type", [ContentType.STUDY_GUIDE, ContentType.BRIEFING_DOC])
    def test_standard_prompts_have_six_sections(self, generator, content_type):
        prompt = generator.build_prompt(content_type, "transcript text")
        assert numbered_items(prompt) == 6
        assert "VIDEO INFORMATION" not in prompt

    def test_metadata_block(self, generator, metadata):
        prompt = generator.build_prompt(ContentType.STUDY_GUIDE, "transcript text", metadata)
        assert "Video Title: Photosynthesis Explained" in prompt
        assert "Channel: Science Channel" in prompt
        assert "Views: 15000" in prompt
        assert "Tags: biology, plants" in prompt
        assert f"Description: {'d' * 500}..." in prompt
        assert "d" * 501 not in prompt

    def test_tags_default_to_none(self, generator, metadata):
        prompt = generator.build_prompt(ContentType.STUDY_GUIDE, "text", metadata.model_copy(update={"tags": []}))
        assert "Tags: None" in prompt

    def test_transcript_is_truncated(self, generator):
        transcript = "x" * 8000 + "y" * 100
        prompt = generator.build_prompt(ContentType.STUDY_GUIDE, transcript)
        assert "x" * 8000 in prompt
        assert "y" not in prompt.split("Transcript: ")[1]

    def test_truncation_is_configurable(self, openai_client):
        generator = ContentGenerator(make_config(openai_api_key="sk-test", transcript_excerpt_chars=1000),
                                     client=openai_client)
        prompt = generator.build_prompt(ContentType.STUDY_GUIDE, "z" * 5000)
        assert prompt.count("z") == 1000

    def test_prompt_is_deterministic(self, generator, metadata):
        first = generator.build_prompt(ContentType.BRIEFING_DOC, "same transcript", metadata)
        second = generator.build_prompt(ContentType.BRIEFING_DOC, "same transcript", metadata)
        assert first == second

    def test_unsupported_type(self, generator):
        with pytest.raises(InvalidRequestError):
            generator.build_prompt(ContentType.NOTE, "text")


class TestGenerate:
    """LLM invocation."""

    def test_returns_content_verbatim(self, generator, openai_client):
        openai_client.chat.completions.create.return_value = Mock(
            choices=[Mock(message=Mock(content="  # Guide\n\nraw output  "))]
        )

        content = asyncio.run(generator.generate(ContentType.STUDY_GUIDE, "transcript text"))

        assert content == "  # Guide\n\nraw output  "
        call = openai_client.chat.completions.create.call_args
        assert call.kwargs["model"] == "gpt-4o-mini"
        assert call.kwargs["messages"][0]["role"] == "user"

    def test_missing_key_checked_before_call(self):
        generator = ContentGenerator(make_config())

        with pytest.raises(ConfigurationError) as exc_info:
            asyncio.run(generator.generate(ContentType.STUDY_GUIDE, "transcript"))

        assert "OPENAI_API_KEY" in exc_info.value.details
        assert not generator.is_configured

    def test_provider_failure_is_upstream_error(self, generator, openai_client):
        openai_client.chat.completions.create.side_effect = RuntimeError("503 Service Unavailable")

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(generator.generate(ContentType.BRIEFING_DOC, "transcript"))

        assert exc_info.value.status_code == 500
        assert "503" in exc_info.value.details

    def test_called_once(self, generator, openai_client):
        asyncio.run(generator.generate(ContentType.STUDY_GUIDE, "transcript"))
        assert openai_client.chat.completions.create.await_count == 1


class TestChatAndNotes:

    def test_chat_prompt_with_transcript(self, generator):
        prompt = generator.build_chat_prompt("What is ATP?", "https://youtu.be/dQw4w9WgXcQ", "Biology", "ATP is...")
        assert 'Title: "Biology"' in prompt
        assert "ATP is..." in prompt
        assert 'User Question: "What is ATP?"' in prompt

    def test_chat_prompt_without_transcript(self, generator):
        prompt = generator.build_chat_prompt("What is ATP?", "https://youtu.be/dQw4w9WgXcQ", "Biology")
        assert "transcript could not be accessed" in prompt

    def test_chat_prompt_without_video(self, generator):
        prompt = generator.build_chat_prompt("How do I start?")
        assert "hasn't selected a specific YouTube video" in prompt

    def test_chat_returns_answer(self, generator, openai_client):
        openai_client.chat.completions.create.return_value = Mock(choices=[Mock(message=Mock(content="Answer"))])
        assert asyncio.run(generator.chat("Question?")) == "Answer"

    def test_note_context_only_for_long_transcripts(self, generator):
        short = generator.build_note_prompt("my note", "Title", "https://youtu.be/dQw4w9WgXcQ", "short")
        long_transcript = "t" * 3000
        long = generator.build_note_prompt("my note", "Title", "https://youtu.be/dQw4w9WgXcQ", long_transcript)

        assert "Video Context" not in short
        assert "Video Context (first 2000 characters)" in long
        assert long.count("t" * 2000) == 1
        assert "t" * 2001 not in long
        assert "**Action Items**" in long

    def test_ping_uses_small_token_budget(self, generator, openai_client):
        asyncio.run(generator.ping())
        assert openai_client.chat.completions.create.call_args.kwargs["max_tokens"] == 50

    def test_list_models(self, openai_client):
        openai_client.models.list = AsyncMock(return_value=Mock(data=[Mock(id="gpt-4o-mini", owned_by="openai")]))
        generator = ContentGenerator(make_config(openai_api_key="sk-test"), client=openai_client)

        models = asyncio.run(generator.list_models())

        assert models == [{"id": "gpt-4o-mini", "ownedBy": "openai"}]

    def test_list_models_failure(self):
        client = MagicMock()
        client.models.list = AsyncMock(side_effect=RuntimeError("unauthorized"))
        generator = ContentGenerator(make_config(openai_api_key="sk-test"), client=client)

        with pytest.raises(UpstreamError):
            asyncio.run(generator.list_models())


def test_default_client_fixture_content():
    client = make_openai_client("hello")
    generator = ContentGenerator(make_config(openai_api_key="sk-test"), client=client)
    assert asyncio.run(generator.generate(ContentType.STUDY_GUIDE, "text")) == "hello"
