"""
Ordered fallback across generation strategies.

Three strategies share one contract, ``attempt(request) -> GenerationOutcome``:

- enhanced: metadata + transcript + LLM with the metadata-aware prompt
- standard: transcript + LLM with the plain prompt
- mock: transcript + fixed templates, no LLM

``FallbackChain`` tries them in order and returns the first success. Each path
fetches the transcript itself, so a transcript failure on one path does not stop
the next. When every path fails the last error is raised.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .content_generator import ContentGenerator
from .error_handling import TranscriptUnavailableError
from .models import GeneratedArtifact, GenerationRequest, GeneratorPath
from .transcript_processor import TranscriptProcessor
from .youtube_client import YouTubeClient
from . import mock_content

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutcome:
    """Result of one strategy attempt: an artifact or the error that stopped it."""
    path: GeneratorPath
    artifact: Optional[GeneratedArtifact] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None


@dataclass
class ChainResult:
    """The winning artifact plus every path tried on the way to it."""
    artifact: GeneratedArtifact
    attempts: List[Tuple[GeneratorPath, Optional[str]]] = field(default_factory=list)

    @property
    def attempted_paths(self) -> List[GeneratorPath]:
        return [path for path, _ in self.attempts]


class GenerationStrategy:
    """Base class for one generation path."""

    path: GeneratorPath

    def __init__(self, transcripts: TranscriptProcessor):
        self.transcripts = transcripts

    async def attempt(self, request: GenerationRequest) -> GenerationOutcome:
        """
        Run this path once, converting any failure into an outcome.

        Args:
            request: Video reference and requested content type

        Returns:
            GenerationOutcome holding either the artifact or the error
        """
        started = time.monotonic()
        try:
            artifact = await self._generate(request, started)
        except Exception as e:
            logger.warning(f"{self.path.value} generation failed for {request.video_ref.id}: {e}")
            return GenerationOutcome(path=self.path, error=e)
        return GenerationOutcome(path=self.path, artifact=artifact)

    async def _generate(self, request: GenerationRequest, started: float) -> GeneratedArtifact:
        raise NotImplementedError

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)


class EnhancedStrategy(GenerationStrategy):
    """Metadata-enriched generation, the highest quality path."""

    path = GeneratorPath.ENHANCED

    def __init__(self, transcripts: TranscriptProcessor, youtube: YouTubeClient, generator: ContentGenerator):
        super().__init__(transcripts)
        self.youtube = youtube
        self.generator = generator

    async def _generate(self, request: GenerationRequest, started: float) -> GeneratedArtifact:
        video_id = request.video_ref.id
        metadata = await self.youtube.fetch_metadata(video_id)
        transcript = await self.transcripts.fetch_transcript(video_id)
        content = await self.generator.generate(request.content_type, transcript.text, metadata)
        return GeneratedArtifact(
            content=content,
            content_type=request.content_type,
            video_id=video_id,
            generator_path=self.path,
            transcript_length_chars=transcript.length_chars,
            processing_time_ms=self._elapsed_ms(started),
            metadata=metadata,
        )


class StandardStrategy(GenerationStrategy):
    """Transcript-only generation."""

    path = GeneratorPath.STANDARD

    def __init__(self, transcripts: TranscriptProcessor, generator: ContentGenerator):
        super().__init__(transcripts)
        self.generator = generator

    async def _generate(self, request: GenerationRequest, started: float) -> GeneratedArtifact:
        video_id = request.video_ref.id
        transcript = await self.transcripts.fetch_transcript(video_id)
        content = await self.generator.generate(request.content_type, transcript.text)
        return GeneratedArtifact(
            content=content,
            content_type=request.content_type,
            video_id=video_id,
            generator_path=self.path,
            transcript_length_chars=transcript.length_chars,
            processing_time_ms=self._elapsed_ms(started),
        )


class MockStrategy(GenerationStrategy):
    """Templated output for when the LLM provider is unavailable."""

    path = GeneratorPath.MOCK

    async def _generate(self, request: GenerationRequest, started: float) -> GeneratedArtifact:
        video_id = request.video_ref.id
        transcript = await self.transcripts.fetch_transcript(video_id)
        content = mock_content.render(request.content_type, transcript.text)
        return GeneratedArtifact(
            content=content,
            content_type=request.content_type,
            video_id=video_id,
            generator_path=self.path,
            transcript_length_chars=transcript.length_chars,
        )


class FallbackChain:
    """Tries strategies in order; the first success wins."""

    def __init__(self, strategies: Sequence[GenerationStrategy]):
        if not strategies:
            raise ValueError("FallbackChain requires at least one strategy")
        self.strategies = list(strategies)

    async def run(self, request: GenerationRequest) -> ChainResult:
        """
        Run the chain for one request.

        Args:
            request: Video reference and requested content type

        Returns:
            ChainResult with the first successful artifact

        Raises:
            Exception: The last strategy's error when none succeeded
        """
        attempts: List[Tuple[GeneratorPath, Optional[str]]] = []
        last_error: Optional[Exception] = None

        for strategy in self.strategies:
            outcome = await strategy.attempt(request)
            if outcome.succeeded:
                attempts.append((outcome.path, None))
                if len(attempts) > 1:
                    logger.info(f"Generated {request.content_type.value} for {request.video_ref.id} via "
                                f"{outcome.path.value} path after {len(attempts) - 1} failed path(s)")
                return ChainResult(artifact=outcome.artifact, attempts=attempts)

            attempts.append((outcome.path, str(outcome.error)))
            last_error = outcome.error

            # Later paths refetch the transcript
            if isinstance(outcome.error, TranscriptUnavailableError):
                logger.warning(f"Transcript unavailable for {request.video_ref.id} on {outcome.path.value} path")

            logger.info(f"Falling back from {outcome.path.value} path")

        logger.error(f"All generation paths failed for {request.video_ref.id}: "
                     f"{[path.value for path, _ in attempts]}")
        raise last_error


def build_default_chain(
    transcripts: TranscriptProcessor,
    youtube: YouTubeClient,
    generator: ContentGenerator
) -> FallbackChain:
    """Enhanced, then standard, then mock."""
    return FallbackChain([
        EnhancedStrategy(transcripts, youtube, generator),
        StandardStrategy(transcripts, generator),
        MockStrategy(transcripts),
    ])
