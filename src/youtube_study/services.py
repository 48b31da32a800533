"""
Explicitly constructed service graph.

Every component receives its collaborators at construction time; nothing is a
module-level singleton, so tests swap any piece for a double.
"""

import logging
from typing import Any, Dict, Optional

from .accounts import AccountService
from .config import Configuration
from .content_generator import ContentGenerator
from .database import Database
from .error_handling import DetachedTasks
from .fallback_chain import (
    EnhancedStrategy, FallbackChain, MockStrategy, StandardStrategy, build_default_chain
)
from .history import HistoryRecorder
from .identity import HeaderIdentityProvider
from .models import GeneratorPath, HistoryEntryInput, Identity
from .transcript_processor import TranscriptProcessor
from .youtube_client import YouTubeClient

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Holds one instance of each service for the lifetime of the application."""

    def __init__(
        self,
        config: Configuration,
        database: Database,
        transcripts: TranscriptProcessor,
        youtube: YouTubeClient,
        generator: ContentGenerator,
        identity: Optional[HeaderIdentityProvider] = None,
        detached: Optional[DetachedTasks] = None
    ):
        self.config = config
        self.database = database
        self.transcripts = transcripts
        self.youtube = youtube
        self.generator = generator
        self.identity = identity or HeaderIdentityProvider()
        self.detached = detached or DetachedTasks()
        self.history = HistoryRecorder(database, page_size=config.history_page_size)
        self.accounts = AccountService(database)

        self.chain = build_default_chain(transcripts, youtube, generator)
        self.single_path_chains: Dict[GeneratorPath, FallbackChain] = {
            GeneratorPath.ENHANCED: FallbackChain([EnhancedStrategy(transcripts, youtube, generator)]),
            GeneratorPath.STANDARD: FallbackChain([StandardStrategy(transcripts, generator)]),
            GeneratorPath.MOCK: FallbackChain([MockStrategy(transcripts)]),
        }

    @classmethod
    def from_config(cls, config: Configuration) -> 'ServiceContainer':
        """Build real provider clients from configuration."""
        return cls(
            config=config,
            database=Database(config.database_url, echo=config.database_echo),
            transcripts=TranscriptProcessor(config),
            youtube=YouTubeClient(config),
            generator=ContentGenerator(config),
        )

    def record_detached(self, identity: Identity, entry: HistoryEntryInput, description: str) -> Any:
        """
        Save a history entry without making the caller wait.

        The account is created first if needed, so a history save never fails
        only because the profile endpoint was not called yet.
        """
        async def _save():
            await self.accounts.get_or_create(identity)
            return await self.history.record(identity.user_id, entry)

        return self.detached.spawn(_save, description)

    async def shutdown(self) -> None:
        """Wait for detached saves, then release the database engine."""
        if self.detached.pending:
            logger.info(f"Waiting for {self.detached.pending} detached task(s)")
        await self.detached.drain()
        await self.database.dispose()
