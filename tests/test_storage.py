"""Summary: Tests for the atomic JSON storage layer.

Importance: Ensures persistence survives failed writes and corrupt documents.
Alternatives: Rely on manual testing for storage operations.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from newsroom.errors import StorageError
from newsroom.models import Message, Reaction
from newsroom.storage import json_store
from newsroom.storage.json_store import CacheCollection, JsonCollection, StorageContext
from newsroom.storage.records import message_from_record, message_to_record, parse_timestamp


def test_read_returns_default_when_missing(tmp_path: Path) -> None:
    """Summary: Verify a missing document reads as its default shape.

    Importance: Services never special-case first runs.
    Alternatives: Require initialize before every read.
    """

    collection = JsonCollection(tmp_path / "messages.json", "messages")
    document = collection.read()
    assert document["messages"] == []
    assert "lastUpdated" in document


def test_update_then_read_returns_written_value(tmp_path: Path) -> None:
    """Summary: Verify read-your-write through update.

    Importance: Confirms the read-modify-write primitive persists changes.
    Alternatives: Test write and read separately only.
    """

    collection = JsonCollection(tmp_path / "tags.json", "tags")

    def _add(document: dict) -> dict:
        document["tags"].append({"id": 1, "name": "deployment"})
        return document

    collection.update(_add)
    assert collection.read()["tags"] == [{"id": 1, "name": "deployment"}]


def test_failed_rename_keeps_previous_snapshot(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Verify a crash before the rename leaves the old document intact.

    Importance: Readers must never observe a partially written document.
    Alternatives: Inspect file contents manually after killing the process.
    """

    path = tmp_path / "summaries.json"
    collection = JsonCollection(path, "summaries")
    collection.write({"summaries": [{"id": "old"}], "lastUpdated": "x"})

    def _fail(*_args: object, **_kwargs: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(json_store.os, "replace", _fail)
    with pytest.raises(StorageError):
        collection.write({"summaries": [{"id": "new"}], "lastUpdated": "y"})
    assert json.loads(path.read_text(encoding="utf-8"))["summaries"] == [{"id": "old"}]
    assert list(tmp_path.glob("*.tmp")) == []


def test_unserializable_snapshot_raises_storage_error(tmp_path: Path) -> None:
    collection = JsonCollection(tmp_path / "users.json", "users")
    with pytest.raises(StorageError):
        collection.write({"users": [object()]})
    assert not (tmp_path / "users.json").exists()
    assert list(tmp_path.glob("*.tmp")) == []


def test_corrupt_document_reads_as_default(tmp_path: Path) -> None:
    """Summary: Verify unreadable JSON falls back to the default shape.

    Importance: Read failures degrade instead of crashing services.
    Alternatives: Surface parse errors to callers.
    """

    path = tmp_path / "associations.json"
    path.write_text("{not json", encoding="utf-8")
    document = JsonCollection(path, "associations").read()
    assert document["associations"] == []
    assert document["corrections"] == []
    assert document["learningStats"]["accuracy"] == 0


def test_cache_entries_expire_after_ttl(tmp_path: Path) -> None:
    """Summary: Verify cache hits before the TTL and misses after it.

    Importance: Expiration happens at read time without sweeping.
    Alternatives: Evict entries in the background.
    """

    now = [1_000_000.0]
    cache = CacheCollection(tmp_path / "cache.json", ttl=timedelta(hours=24), clock=lambda: now[0])
    cache.put("summary_key", {"summary": "hello"})
    now[0] += 23 * 3600
    assert cache.get("summary_key") == {"summary": "hello"}
    now[0] += 2 * 3600
    assert cache.get("summary_key") is None
    assert "summary_key" in cache.read()["cache"]


def test_initialize_seeds_documents_and_reports_stats(tmp_path: Path) -> None:
    store = StorageContext(tmp_path / "data")
    store.initialize()
    for name in json_store.COLLECTION_NAMES:
        assert (tmp_path / "data" / f"{name}.json").exists()
    stats = store.stats()
    assert stats["messages"]["record_count"] == 0
    assert stats["cache"]["size"] > 0


def test_backup_copies_every_document(tmp_path: Path) -> None:
    """Summary: Verify backups land in a dated directory.

    Importance: Gives operators a restore point.
    Alternatives: Rely on filesystem snapshots.
    """

    store = StorageContext(tmp_path)
    store.initialize()
    backup_dir = store.backup("2026-01-15")
    assert backup_dir == tmp_path / "backups" / "2026-01-15"
    assert sorted(path.name for path in backup_dir.iterdir()) == sorted(
        f"{name}.json" for name in json_store.COLLECTION_NAMES
    )


def test_message_record_preserves_fields() -> None:
    message = Message(
        id="C1.1700000000.000100",
        channel_id="C1",
        user_id="U1",
        text="Deploy finished",
        timestamp=datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc),
        reactions=(Reaction(name="tada", count=2, users=("U2", "U3")),),
        tags=("deployment",),
        importance=0.6,
        squad="general",
        channel_name="deployments",
    )
    record = message_to_record(message)
    assert record["channelId"] == "C1"
    assert message_from_record(record) == message


def test_parse_timestamp_handles_zulu_and_naive_values() -> None:
    assert parse_timestamp("2026-01-15T10:00:00Z").tzinfo is not None
    assert parse_timestamp("2026-01-15T10:00:00").tzinfo == timezone.utc
