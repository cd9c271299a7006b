"""Summary: Tests for the learning engine.

Importance: Ensures corrections and feedback move tag confidence in bounded steps.
Alternatives: Inspect tag confidence manually after user sessions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from newsroom.errors import ValidationError
from newsroom.models import Message, Tag
from newsroom.services import IngestionService, LearningService
from newsroom.storage.json_store import StorageContext
from newsroom.storage.records import tag_to_record

DAY = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def _store(tmp_path: Path, tags: dict[str, float] | None = None) -> StorageContext:
    store = StorageContext(tmp_path / "data")
    store.initialize()
    records = [
        tag_to_record(
            Tag(
                id=index,
                name=name,
                category="keyword",
                confidence=confidence,
                usage_count=1,
                created_at=DAY,
                updated_at=DAY,
            )
        )
        for index, (name, confidence) in enumerate((tags or {}).items(), start=1)
    ]
    store.tags.write({"tags": records})
    return store


def _confidences(store: StorageContext) -> dict[str, float]:
    return {record["name"]: record["confidence"] for record in store.tags.read()["tags"]}


def test_correction_adjusts_removed_kept_and_added_tags(tmp_path: Path) -> None:
    """Summary: Verify correction multipliers and custom tag creation.

    Importance: Corrections are the strongest learning signal.
    Alternatives: Treat corrections as plain negative feedback.
    """

    store = _store(tmp_path, {"bug-fix": 0.8, "release": 0.5})
    IngestionService(store=store).ingest_messages(
        [
            Message(
                id="C1.1",
                channel_id="C1",
                user_id="U1",
                text="hotfix shipped",
                timestamp=DAY,
                tags=("bug-fix", "release"),
                channel_name="releases",
            )
        ]
    )
    learning = LearningService(store=store)
    correction = learning.record_correction(
        "C1.1", ["bug-fix", "release"], ["release", " Hotfix "], actor="U2"
    )

    assert correction.corrected_tags == ("release", "hotfix")
    assert correction.confidence == 0.8
    confidences = _confidences(store)
    assert confidences["bug-fix"] == pytest.approx(0.72)
    assert confidences["release"] == pytest.approx(0.55)
    assert confidences["hotfix"] == pytest.approx(0.6)
    hotfix = next(record for record in store.tags.read()["tags"] if record["name"] == "hotfix")
    assert hotfix["category"] == "custom"

    assert store.messages.read()["messages"][0]["tags"] == ["release", "hotfix"]
    associations = store.associations.read()["associations"]
    assert [(item["tagName"], item["isManual"]) for item in associations] == [("hotfix", True)]
    assert store.associations.read()["corrections"][0]["userId"] == "U2"


def test_correction_for_unknown_message_still_learns(tmp_path: Path) -> None:
    store = _store(tmp_path, {"release": 0.5})
    LearningService(store=store).record_correction("missing", ["release"], [])
    assert _confidences(store)["release"] == pytest.approx(0.45)
    assert store.associations.read()["associations"] == []


def test_confidence_stays_bounded_over_long_sequences(tmp_path: Path) -> None:
    """Summary: Verify repeated signals never push confidence outside [0.1, 1.0].

    Importance: Unbounded drift would make tags impossible to recover or demote.
    Alternatives: Reset confidence periodically.
    """

    store = _store(tmp_path, {"deployment": 0.5})
    learning = LearningService(store=store)
    for _ in range(30):
        learning.record_feedback("C1.1", ["deployment"], "negative")
        learning.record_correction("C1.1", ["deployment"], [])
        assert 0.1 <= _confidences(store)["deployment"] <= 1.0
    assert _confidences(store)["deployment"] == pytest.approx(0.1)
    for _ in range(30):
        learning.record_feedback("C1.1", ["deployment"], "positive")
        learning.record_correction("C1.1", ["deployment"], ["deployment"])
        assert 0.1 <= _confidences(store)["deployment"] <= 1.0
    assert _confidences(store)["deployment"] == pytest.approx(1.0)


def test_feedback_rejects_unknown_kinds(tmp_path: Path) -> None:
    learning = LearningService(store=_store(tmp_path))
    with pytest.raises(ValidationError):
        learning.record_feedback("C1.1", ["release"], "correction")
    with pytest.raises(ValidationError):
        learning.record_feedback("C1.1", ["release"], "meh")
    with pytest.raises(ValidationError):
        learning.record_feedback("", ["release"], "positive")
    assert learning.corrections() == []


def test_improved_suggestions_drop_low_confidence_and_add_context(tmp_path: Path) -> None:
    """Summary: Verify learned confidence filters suggestions and context tags are appended.

    Importance: Closes the loop between user feedback and future analyses.
    Alternatives: Apply learning only in reporting.
    """

    learning = LearningService(store=_store(tmp_path, {"stale": 0.3, "fresh": 0.31}))
    improved = learning.get_improved_suggestions(
        "we deploy soon", "ops", ["stale", "fresh", "fresh", "unknown"]
    )
    assert improved == ["fresh", "unknown", "deployment"]


def test_metrics_summarize_history(tmp_path: Path) -> None:
    """Summary: Verify metrics count feedback kinds and most corrected tags.

    Importance: Operators track tagging quality from these numbers.
    Alternatives: Export corrections for offline analysis.
    """

    learning = LearningService(store=_store(tmp_path, {"bug-fix": 0.8, "release": 0.6}))
    learning.record_correction("C1.1", ["bug-fix", "release"], ["release"])
    learning.record_correction("C1.2", ["bug-fix"], ["incident"])
    learning.record_feedback("C1.3", ["release"], "positive")
    learning.record_feedback("C1.4", ["release"], "positive")
    learning.record_feedback("C1.5", ["release"], "negative")
    learning.record_feedback("C1.6", ["release"], "positive")

    metrics = learning.get_metrics()
    assert metrics.total_corrections == 6
    assert metrics.feedback_stats == {"positive": 3, "negative": 1, "corrections": 2}
    assert metrics.accuracy_improvement == pytest.approx(50.0)
    assert metrics.most_corrected_tags == (("bug-fix", 2),)

    recent = learning.recent_corrections(limit=2)
    assert len(recent) == 2
    assert recent[0].timestamp >= recent[1].timestamp


def test_metrics_empty_history(tmp_path: Path) -> None:
    metrics = LearningService(store=_store(tmp_path)).get_metrics()
    assert metrics.total_corrections == 0
    assert metrics.accuracy_improvement == 0.0
    assert metrics.most_corrected_tags == ()
