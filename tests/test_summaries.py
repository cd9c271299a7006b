"""Summary: Tests for daily summary generation.

Importance: Ensures summaries are cached, degrade to defaults, and stay unique per key.
Alternatives: Review generated summaries by hand each morning.
"""

from __future__ import annotations

import asyncio
import io
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from newsroom.ai import AiProvider, MockAiProvider, OllamaProvider
from newsroom.errors import UpstreamError, ValidationError
from newsroom.models import Message
from newsroom.responses import DEFAULT_HIGHLIGHTS, DEFAULT_SUMMARY, DEFAULT_TOPICS
from newsroom.services import IngestionService, SummaryService
from newsroom.storage.json_store import StorageContext

DAY = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


class _CountingProvider(AiProvider):
    """Summary: Mock-backed provider that counts calls and can fail.

    Importance: Lets tests observe cache hits and provider outages.
    Alternatives: Patch the cache collection directly.
    """

    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self._fail = fail
        self._mock = MockAiProvider()

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        self.calls += 1
        if self._fail:
            raise UpstreamError("model offline")
        return self._mock.generate_text(prompt, purpose)


def _seed(tmp_path: Path) -> StorageContext:
    store = StorageContext(tmp_path / "data")
    store.initialize()
    rows = [
        ("C1", "thoughtful-epic", "U1", "Epic release 2.4 ships Thursday"),
        ("C2", "portal-aggregator", "U2", "Portal bug fixed in the login flow"),
        ("C3", "voice-dev", "U3", "Voice latency is down 20 percent"),
        ("C1", "thoughtful-epic", "U2", "Checklist for the release is ready"),
    ]
    messages = [
        Message(
            id=f"{channel_id}.{index}",
            channel_id=channel_id,
            user_id=user_id,
            text=text,
            timestamp=DAY + timedelta(hours=index),
            channel_name=channel_name,
            user_name=user_id.lower(),
        )
        for index, (channel_id, channel_name, user_id, text) in enumerate(rows)
    ]
    messages.append(
        Message(
            id="C1.old",
            channel_id="C1",
            user_id="U1",
            text="yesterday's news",
            timestamp=DAY - timedelta(days=1),
            channel_name="thoughtful-epic",
        )
    )
    IngestionService(store=store).ingest_messages(messages)
    return store


def test_generate_summary_for_all_squads(tmp_path: Path) -> None:
    """Summary: Verify a summary covers the day's messages with local metrics.

    Importance: Confirms the happy path for the morning briefing.
    Alternatives: Summarize only the busiest channel.
    """

    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=MockAiProvider())
    summary = asyncio.run(service.generate_daily_summary("2026-01-15"))

    assert summary.id == "summary_2026-01-15_all"
    assert summary.title == "Daily Summary - 2026-01-15"
    assert summary.message_count == 4
    assert summary.content.startswith("[mock:daily_summary] 4 messages reviewed.")
    assert "release" in summary.key_topics
    assert summary.sentiment == "neutral"
    assert summary.greeting is None
    assert summary.activity.participant_count == 3
    assert summary.activity.channel_count == 3
    assert summary.activity.messages_by_squad == {"epic": 2, "portal-agg": 1, "voice": 1}
    assert summary.squads_analyzed == ("epic", "portal-agg", "voice")
    assert summary.channels == ("portal-aggregator", "thoughtful-epic", "voice-dev")
    assert summary.tokens_used > 0
    assert service.get_summary("2026-01-15") == summary


def test_regeneration_hits_cache_and_keeps_created_at(tmp_path: Path) -> None:
    """Summary: Verify regenerating a key replaces the record and reuses the cache.

    Importance: At most one summary exists per (date, squad).
    Alternatives: Append a new summary on every run.
    """

    store = _seed(tmp_path)
    provider = _CountingProvider()
    service = SummaryService(store=store, provider=provider)
    first = asyncio.run(service.generate_daily_summary("2026-01-15"))
    second = asyncio.run(service.generate_daily_summary("2026-01-15"))

    assert provider.calls == 1
    assert second.created_at == first.created_at
    assert second.updated_at >= first.updated_at
    assert second.content == first.content
    assert len(store.summaries.read()["summaries"]) == 1

    asyncio.run(service.generate_daily_summary("2026-01-15", include_greeting=True))
    assert provider.calls == 2


def test_provider_failure_degrades_to_defaults(tmp_path: Path) -> None:
    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=_CountingProvider(fail=True))
    summary = asyncio.run(service.generate_daily_summary("2026-01-15", include_greeting=True))
    assert summary.content == DEFAULT_SUMMARY
    assert summary.key_topics == DEFAULT_TOPICS
    assert summary.highlights == DEFAULT_HIGHLIGHTS
    assert summary.greeting
    assert summary.tokens_used == 0
    assert summary.message_count == 4
    assert store.cache.read()["cache"] == {}


def test_empty_day_is_an_error(tmp_path: Path) -> None:
    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=MockAiProvider())
    with pytest.raises(UpstreamError):
        asyncio.run(service.generate_daily_summary("2026-02-01"))
    with pytest.raises(UpstreamError):
        asyncio.run(service.generate_daily_summary("2026-01-15", squad="hitl"))
    assert store.summaries.read()["summaries"] == []


def test_invalid_date_is_rejected(tmp_path: Path) -> None:
    service = SummaryService(store=_seed(tmp_path), provider=MockAiProvider())
    with pytest.raises(ValidationError):
        asyncio.run(service.generate_daily_summary("15/01/2026"))


def test_parent_squad_summary_includes_subsquads(tmp_path: Path) -> None:
    """Summary: Verify a parent squad summary aggregates its direct subsquads.

    Importance: Core RCM leads need EPIC and Portal Agg traffic in one briefing.
    Alternatives: Generate one summary per subsquad only.
    """

    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=MockAiProvider())
    summary = asyncio.run(service.generate_daily_summary("2026-01-15", squad="core-rcm"))
    assert summary.id == "summary_2026-01-15_core-rcm"
    assert summary.title == "Daily Summary - 2026-01-15 (Core RCM)"
    assert summary.message_count == 3
    assert summary.squads_analyzed == ("epic", "portal-agg")

    epic = asyncio.run(service.generate_daily_summary("2026-01-15", squad="epic"))
    assert epic.message_count == 2
    listed = service.list_summaries(date="2026-01-15")
    assert {item.id for item in listed} == {
        "summary_2026-01-15_core-rcm",
        "summary_2026-01-15_epic",
    }
    assert [item.id for item in service.list_summaries(squad="epic")] == ["summary_2026-01-15_epic"]
    assert len(service.list_summaries(limit=1)) == 1
    assert service.get_summary("2026-01-15", "voice") is None


def test_excerpts_are_capped_per_squad(tmp_path: Path) -> None:
    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=MockAiProvider(), excerpt_limit=1)
    summary = asyncio.run(service.generate_daily_summary("2026-01-15"))
    assert summary.message_count == 4
    assert summary.content.startswith("[mock:daily_summary] 3 messages reviewed.")


def test_new_messages_regenerate_and_replace_summary(tmp_path: Path) -> None:
    """Summary: Verify a later run with more messages replaces the stored content.

    Importance: The stored summary must reflect the newest run, not the first one.
    Alternatives: Keep the first summary until it expires.
    """

    store = StorageContext(tmp_path / "data")
    store.initialize()
    ingestion = IngestionService(store=store)

    def _post(index: int, text: str) -> Message:
        return Message(
            id=f"C1.{index}",
            channel_id="C1",
            user_id=f"U{index}",
            text=text,
            timestamp=DAY + timedelta(hours=index),
            channel_name="thoughtful-epic",
        )

    ingestion.ingest_messages([_post(0, "Epic release 2.4 ships Thursday")])
    provider = _CountingProvider()
    service = SummaryService(store=store, provider=provider)
    first = asyncio.run(service.generate_daily_summary("2026-01-15"))

    ingestion.ingest_messages([_post(1, "Checklist for the release is ready")])
    second = asyncio.run(service.generate_daily_summary("2026-01-15"))

    assert provider.calls == 2
    assert first.content.startswith("[mock:daily_summary] 1 messages reviewed.")
    assert second.content.startswith("[mock:daily_summary] 2 messages reviewed.")
    summaries = store.summaries.read()["summaries"]
    assert len(summaries) == 1
    assert summaries[0]["content"] == second.content
    assert summaries[0]["content"] != first.content
    assert second.message_count == 2
    assert second.created_at == first.created_at
    assert service.get_summary("2026-01-15") == second


def test_ollama_timeout_degrades_to_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _timeout(request: object, timeout: float) -> io.BytesIO:
        raise TimeoutError("timed out")

    monkeypatch.setattr("urllib.request.urlopen", _timeout)
    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=OllamaProvider("http://ollama.test", "llama3"))
    summary = asyncio.run(service.generate_daily_summary("2026-01-15"))
    assert summary.content == DEFAULT_SUMMARY
    assert summary.tokens_used == 0
    assert store.cache.read()["cache"] == {}


def test_ollama_null_response_degrades_to_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Verify a null model response yields the default sections.

    Importance: Ollama can answer with "response": null on model errors.
    Alternatives: Treat null output as an upstream failure.
    """

    monkeypatch.setattr(
        "urllib.request.urlopen", lambda request, timeout: io.BytesIO(b'{"response": null}')
    )
    store = _seed(tmp_path)
    service = SummaryService(store=store, provider=OllamaProvider("http://ollama.test", "llama3"))
    summary = asyncio.run(service.generate_daily_summary("2026-01-15"))
    assert summary.content == DEFAULT_SUMMARY
    assert summary.key_topics == DEFAULT_TOPICS
    assert summary.message_count == 4
