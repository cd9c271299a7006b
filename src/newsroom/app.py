"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from newsroom.ai import AiProvider, AiProviderFactory
from newsroom.config import AppConfig
from newsroom.errors import ValidationError
from newsroom.slack import FixtureMessageSource, MessageSource, SlackApiMessageSource
from newsroom.services import (
    IngestionService,
    LearningService,
    StatsService,
    SummaryService,
    TaggingService,
)
from newsroom.squads import SquadDirectory, SquadResolver
from newsroom.storage.json_store import StorageContext


@dataclass(frozen=True)
class AppServices:
    """Summary: Bundle of core services for Newsroom.

    Importance: Simplifies passing dependencies to CLI and API layers.
    Alternatives: Use a dependency injection container.
    """

    ingestion: IngestionService
    tagging: TaggingService
    learning: LearningService
    summaries: SummaryService
    stats: StatsService
    resolver: SquadResolver
    store: StorageContext
    ai_provider: AiProvider
    model_name: str
    config: AppConfig

    def message_source(self) -> MessageSource:
        """Summary: Build the configured message source.

        Importance: Uses the Slack API when a bot token exists, the fixture otherwise.
        Alternatives: Require callers to choose a source explicitly.
        """

        if self.config.slack_bot_token:
            return SlackApiMessageSource(self.config.slack_bot_token, self.config.slack_api_url)
        return FixtureMessageSource(Path(self.config.slack_fixture_path))


def build_resolver(config: AppConfig) -> SquadResolver:
    """Summary: Build the squad resolver from the default or configured squads.

    Importance: Lets deployments override squads without code changes.
    Alternatives: Always use the compiled-in squads.
    """

    if not config.squads_path:
        return SquadResolver()
    path = Path(config.squads_path)
    if not path.exists():
        raise ValidationError(f"Squads file not found: {path}")
    return SquadResolver(directory=SquadDirectory.from_file(path))


def build_services(config: AppConfig, ai_provider: AiProvider | None = None) -> AppServices:
    """Summary: Build core services from configuration.

    Importance: One explicit storage context is shared by every service.
    Alternatives: Instantiate storage globally at import time.
    """

    store = StorageContext(config.data_dir, cache_ttl=timedelta(hours=config.cache_ttl_hours))
    store.initialize()
    factory = AiProviderFactory(config)
    provider = ai_provider or factory.build()
    resolver = build_resolver(config)
    learning = LearningService(store=store)
    return AppServices(
        ingestion=IngestionService(store=store, resolver=resolver),
        tagging=TaggingService(
            store=store,
            provider=provider,
            learning=learning,
            resolver=resolver,
            batch_size=config.analysis_batch_size,
            batch_delay_seconds=config.analysis_batch_delay_seconds,
            min_confidence=config.min_suggestion_confidence,
        ),
        learning=learning,
        summaries=SummaryService(
            store=store,
            provider=provider,
            resolver=resolver,
            excerpt_limit=config.summary_excerpt_limit,
        ),
        stats=StatsService(store=store),
        resolver=resolver,
        store=store,
        ai_provider=provider,
        model_name=factory.model_name() if ai_provider is None else type(provider).__name__,
        config=config,
    )
