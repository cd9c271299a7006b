"""Summary: FastAPI application for Newsroom.

Importance: Exposes HTTP endpoints for the operations dashboard and integrations.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from newsroom.ai import AiProvider
from newsroom.app import build_services
from newsroom.config import AppConfig
from newsroom.errors import MessageNotFoundError, UpstreamError, ValidationError
from newsroom.models import AnalysisResult, LearningMetrics, TagCorrection
from newsroom.services import day_window
from newsroom.slack import FixtureMessageSource
from newsroom.storage.records import (
    channel_to_record,
    correction_to_record,
    message_tag_to_record,
    message_to_record,
    summary_to_record,
    user_to_record,
)

logger = logging.getLogger(__name__)


class FixtureIngestRequest(BaseModel):
    """Summary: Request payload for fixture ingestion.

    Importance: Keeps ingestion inputs explicit for API clients.
    Alternatives: Use query parameters instead of JSON payloads.
    """

    fixture_path: str | None = None
    channel_ids: list[str] = Field(default_factory=list)
    date: str | None = None


class SlackIngestRequest(BaseModel):
    """Summary: Request payload for Slack ingestion.

    Importance: Lets clients scan specific channels or the monitored set.
    Alternatives: Always scan every monitored channel.
    """

    channel_ids: list[str] = Field(default_factory=list)
    date: str | None = None


class BatchAnalysisRequest(BaseModel):
    """Summary: Request payload for batch analysis.

    Importance: Analyzes explicit message ids in one rate-limited call.
    Alternatives: Analyze messages one request at a time.
    """

    message_ids: list[str] = Field(min_length=1, max_length=200)


class StoredAnalysisRequest(BaseModel):
    """Summary: Request payload for backfilling stored messages.

    Importance: Bounds the number of model calls per request.
    Alternatives: Analyze every stored message.
    """

    limit: int = Field(default=50, ge=1, le=500)
    only_untagged: bool = True


class CorrectionRequest(BaseModel):
    """Summary: Request payload for tag corrections.

    Importance: Captures the full before and after tag sets.
    Alternatives: Send only added and removed tags.
    """

    message_id: str
    original_tags: list[str]
    corrected_tags: list[str]
    user_id: str | None = None


class FeedbackRequest(BaseModel):
    """Summary: Request payload for tag feedback.

    Importance: Keeps feedback kinds explicit for learning.
    Alternatives: Use separate endpoints per feedback kind.
    """

    message_id: str
    tags: list[str]
    feedback: str
    user_id: str | None = None


class SummaryRequest(BaseModel):
    """Summary: Request payload for daily summary generation.

    Importance: Scopes summaries to a date and optional squad.
    Alternatives: Always summarize yesterday across all squads.
    """

    date: str
    squad: str | None = None
    include_greeting: bool = False


def _analysis_to_dict(result: AnalysisResult) -> dict[str, Any]:
    return {
        "messageId": result.message_id,
        "tags": list(result.tag_names),
        "associations": [message_tag_to_record(item) for item in result.tags],
        "importance": result.importance,
        "urgency": result.urgency,
        "processingMs": result.processing_ms,
    }


def _metrics_to_dict(metrics: LearningMetrics) -> dict[str, Any]:
    return {
        "totalCorrections": metrics.total_corrections,
        "accuracyImprovement": metrics.accuracy_improvement,
        "mostCorrectedTags": [
            {"tag": tag, "corrections": count} for tag, count in metrics.most_corrected_tags
        ],
        "userFeedbackStats": dict(metrics.feedback_stats),
    }


def _correction_to_dict(correction: TagCorrection) -> dict[str, Any]:
    return correction_to_record(correction)


def create_app(config: AppConfig, ai_provider: AiProvider | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to Newsroom services.

    Importance: Ensures the API layer shares the same configuration and storage.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="Newsroom API", version="0.1.0")
    services = build_services(config, ai_provider=ai_provider)

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Adds a minimal security layer for local and private deployments.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.get("/health")
    def health() -> dict[str, str]:
        """Summary: Health check endpoint.

        Importance: Supports uptime checks in local and cloud deployments.
        Alternatives: Use a metrics endpoint only.
        """

        return {"status": "ok", "provider": services.model_name}

    @app.post("/ingest/fixture", dependencies=[Depends(require_api_key)])
    def ingest_fixture(payload: FixtureIngestRequest) -> dict[str, Any]:
        """Summary: Ingest Slack-shaped messages from a fixture file.

        Importance: Enables deterministic demos and integration tests.
        Alternatives: Accept raw message payloads over the API.
        """

        fixture_path = Path(payload.fixture_path or config.slack_fixture_path)
        if not fixture_path.exists():
            raise HTTPException(status_code=404, detail="Fixture not found")
        source = FixtureMessageSource(fixture_path)
        try:
            start, end = day_window(payload.date)
            channel_ids = payload.channel_ids or source.channel_ids()
            results = services.ingestion.scan_channels(source, channel_ids, start, end)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UpstreamError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"ingested": sum(results.values()), "channels": results}

    @app.post("/ingest/slack", dependencies=[Depends(require_api_key)])
    def ingest_slack(payload: SlackIngestRequest) -> dict[str, Any]:
        """Summary: Ingest channel history from the configured source.

        Importance: Drives the daily scan of monitored channels.
        Alternatives: Rely on Slack event subscriptions.
        """

        channel_ids = payload.channel_ids or config.monitored_channels
        if not channel_ids:
            raise HTTPException(status_code=400, detail="No channels to scan")
        try:
            start, end = day_window(payload.date)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        results = services.ingestion.scan_channels(
            services.message_source(), channel_ids, start, end
        )
        return {"ingested": sum(results.values()), "channels": results}

    @app.get("/messages", dependencies=[Depends(require_api_key)])
    def list_messages(
        limit: int = 50,
        channel_id: str | None = None,
        squad: str | None = None,
        min_importance: float | None = None,
    ) -> list[dict[str, Any]]:
        """Summary: List recent messages with optional filters.

        Importance: Provides data for dashboard message views.
        Alternatives: Return only message IDs with separate detail endpoints.
        """

        return [
            message_to_record(message)
            for message in services.ingestion.list_messages(
                limit=limit, channel_id=channel_id, squad=squad, min_importance=min_importance
            )
        ]

    @app.get("/messages/{message_id}", dependencies=[Depends(require_api_key)])
    def get_message(message_id: str) -> dict[str, Any]:
        try:
            return message_to_record(services.ingestion.get_message(message_id))
        except MessageNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/messages/{message_id}/tags", dependencies=[Depends(require_api_key)])
    def get_message_tags(message_id: str) -> list[dict[str, Any]]:
        try:
            associations = services.ingestion.message_tags(message_id)
        except MessageNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return [message_tag_to_record(item) for item in associations]

    @app.get("/channels", dependencies=[Depends(require_api_key)])
    def list_channels() -> list[dict[str, Any]]:
        return [channel_to_record(channel) for channel in services.ingestion.list_channels()]

    @app.get("/users", dependencies=[Depends(require_api_key)])
    def list_users() -> list[dict[str, Any]]:
        return [user_to_record(user) for user in services.ingestion.list_users()]

    @app.post("/analysis/messages/{message_id}", dependencies=[Depends(require_api_key)])
    async def analyze_message(message_id: str) -> dict[str, Any]:
        """Summary: Analyze a stored message.

        Importance: Lets users re-run tagging on demand.
        Alternatives: Only analyze in scheduled batches.
        """

        try:
            message = services.ingestion.get_message(message_id)
            result = await services.tagging.analyze_message(message)
        except MessageNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UpstreamError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return _analysis_to_dict(result)

    @app.post("/analysis/batch", dependencies=[Depends(require_api_key)])
    async def analyze_batch(payload: BatchAnalysisRequest) -> dict[str, Any]:
        """Summary: Analyze several stored messages in rate-limited batches.

        Importance: Failed messages fall back instead of failing the request.
        Alternatives: Return an error when any message fails.
        """

        try:
            messages = [services.ingestion.get_message(item) for item in payload.message_ids]
        except MessageNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        results = await services.tagging.analyze_messages(messages)
        return {"results": [_analysis_to_dict(result) for result in results]}

    @app.post("/analysis/stored", dependencies=[Depends(require_api_key)])
    async def analyze_stored(payload: StoredAnalysisRequest) -> dict[str, Any]:
        results = await services.tagging.analyze_stored(
            limit=payload.limit, only_untagged=payload.only_untagged
        )
        return {"analyzed": len(results), "results": [_analysis_to_dict(r) for r in results]}

    @app.post("/learning/corrections", dependencies=[Depends(require_api_key)])
    def record_correction(payload: CorrectionRequest) -> dict[str, Any]:
        """Summary: Record a tag correction.

        Importance: Feeds user knowledge back into tag confidence.
        Alternatives: Collect corrections offline.
        """

        try:
            correction = services.learning.record_correction(
                payload.message_id,
                payload.original_tags,
                payload.corrected_tags,
                actor=payload.user_id,
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _correction_to_dict(correction)

    @app.post("/learning/feedback", dependencies=[Depends(require_api_key)])
    def record_feedback(payload: FeedbackRequest) -> dict[str, Any]:
        try:
            record = services.learning.record_feedback(
                payload.message_id, payload.tags, payload.feedback, actor=payload.user_id
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _correction_to_dict(record)

    @app.get("/learning/metrics", dependencies=[Depends(require_api_key)])
    def learning_metrics() -> dict[str, Any]:
        return _metrics_to_dict(services.learning.get_metrics())

    @app.get("/learning/corrections", dependencies=[Depends(require_api_key)])
    def recent_corrections(limit: int = 50) -> list[dict[str, Any]]:
        return [
            _correction_to_dict(item) for item in services.learning.recent_corrections(limit)
        ]

    @app.post("/summaries/generate", dependencies=[Depends(require_api_key)])
    async def generate_summary(payload: SummaryRequest) -> dict[str, Any]:
        """Summary: Generate and store the daily summary for a date and squad.

        Importance: Produces the primary dashboard artifact.
        Alternatives: Generate summaries only on a schedule.
        """

        try:
            summary = await services.summaries.generate_daily_summary(
                payload.date, squad=payload.squad, include_greeting=payload.include_greeting
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UpstreamError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return summary_to_record(summary)

    @app.get("/summaries", dependencies=[Depends(require_api_key)])
    def list_summaries(
        date: str | None = None, squad: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        return [
            summary_to_record(summary)
            for summary in services.summaries.list_summaries(
                date=date, squad=squad, limit=limit, offset=offset
            )
        ]

    @app.get("/summaries/{date}", dependencies=[Depends(require_api_key)])
    def get_summary(date: str, squad: str | None = None) -> dict[str, Any]:
        try:
            summary = services.summaries.get_summary(date, squad)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if summary is None:
            raise HTTPException(status_code=404, detail="Summary not found")
        return summary_to_record(summary)

    @app.get("/squads", dependencies=[Depends(require_api_key)])
    def list_squads() -> list[dict[str, Any]]:
        """Summary: List configured squads.

        Importance: Populates squad navigation in the dashboard.
        Alternatives: Hardcode squads in the frontend.
        """

        return [asdict(squad) for squad in services.resolver.directory.all_squads()]

    @app.get("/squads/resolve", dependencies=[Depends(require_api_key)])
    def resolve_channel(channel: str) -> dict[str, Any]:
        return {
            "channel": channel,
            "squad": services.resolver.resolve(channel),
            "context": services.resolver.squad_context(channel),
            "multiplier": services.resolver.multiplier(channel),
        }

    @app.get("/squads/{squad_id}", dependencies=[Depends(require_api_key)])
    def get_squad(squad_id: str) -> dict[str, Any]:
        directory = services.resolver.directory
        squad = directory.get_squad(squad_id)
        if squad is None:
            raise HTTPException(status_code=404, detail="Squad not found")
        return {
            **asdict(squad),
            "allChannels": [asdict(item) for item in directory.channels_for_squad(squad_id)],
            "allPeople": [asdict(item) for item in directory.people_for_squad(squad_id)],
            "allTags": [asdict(item) for item in directory.tags_for_squad(squad_id)],
        }

    @app.get("/stats", dependencies=[Depends(require_api_key)])
    def stats() -> dict[str, int]:
        return services.stats.snapshot()

    @app.get("/stats/tags", dependencies=[Depends(require_api_key)])
    def tag_stats() -> dict[str, Any]:
        return services.stats.tag_statistics()

    @app.get("/stats/storage", dependencies=[Depends(require_api_key)])
    def storage_stats() -> dict[str, Any]:
        return services.store.stats()

    @app.post("/storage/backup", dependencies=[Depends(require_api_key)])
    def backup_storage() -> dict[str, str]:
        return {"path": str(services.store.backup())}

    return app
