"""Summary: Atomic JSON document storage for Newsroom.

Importance: Provides crash-safe local persistence shared by every service.
Alternatives: Use SQLite or an external document database.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from newsroom.errors import StorageError

logger = logging.getLogger(__name__)

Document = dict[str, Any]

COLLECTION_NAMES = (
    "messages",
    "users",
    "channels",
    "tags",
    "summaries",
    "associations",
    "cache",
)

DEFAULT_CACHE_TTL = timedelta(hours=24)


def utc_now_iso() -> str:
    """Summary: Return the current UTC time as an ISO-8601 string.

    Importance: Keeps lastUpdated stamps comparable across documents.
    Alternatives: Store epoch seconds instead of ISO strings.
    """

    return datetime.now(timezone.utc).isoformat()


def default_document(name: str) -> Document:
    """Summary: Build the empty default shape for a named collection.

    Importance: Seeds missing documents and replaces unreadable ones on read.
    Alternatives: Fail when a document is missing.
    """

    if name == "cache":
        return {"cache": {}, "lastUpdated": utc_now_iso()}
    if name == "associations":
        return {
            "associations": [],
            "corrections": [],
            "learningStats": {"totalPredictions": 0, "accuratePredictions": 0, "accuracy": 0},
            "lastUpdated": utc_now_iso(),
        }
    if name not in COLLECTION_NAMES:
        raise ValueError(f"Unknown collection: {name}")
    return {name: [], "lastUpdated": utc_now_iso()}


class JsonCollection:
    """Summary: One named JSON document with read, write, and update operations.

    Importance: Readers always observe a complete snapshot, never a torn write.
    Alternatives: Append-only log files with periodic compaction.
    """

    def __init__(self, path: Path, name: str) -> None:
        self._path = path
        self._name = name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._name

    def read(self) -> Document:
        """Summary: Return the current snapshot or the default shape.

        Importance: Read failures degrade to an empty document instead of raising.
        Alternatives: Propagate parse errors to every caller.
        """

        if not self._path.exists():
            return default_document(self._name)
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read %s, using default data: %s", self._path, exc)
            return default_document(self._name)
        if not isinstance(data, dict):
            logger.warning("Document %s is not an object, using default data.", self._path)
            return default_document(self._name)
        return data

    def write(self, snapshot: Document) -> None:
        """Summary: Replace the document through a temporary file and atomic rename.

        Importance: A crash mid-write leaves the previous snapshot intact.
        Alternatives: Write in place and accept torn documents.
        """

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=f"{self._path.name}.", suffix=".tmp"
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(snapshot, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._path)
        except (OSError, TypeError, ValueError) as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self._path}: {exc}") from exc

    def update(self, updater: Callable[[Document], Document]) -> Document:
        """Summary: Read, apply an updater, stamp, write, and return the result.

        Importance: Gives services a single read-modify-write primitive.
        Alternatives: Expose fine-grained mutation helpers per collection.
        """

        # No locking: concurrent updaters of the same document race, last write wins.
        updated = updater(self.read())
        updated["lastUpdated"] = utc_now_iso()
        self.write(updated)
        return updated


class CacheCollection(JsonCollection):
    """Summary: Cache document whose entries expire after a fixed TTL.

    Importance: Avoids repeated model calls for identical summary requests.
    Alternatives: Use an in-memory LRU cache lost on restart.
    """

    def __init__(
        self,
        path: Path,
        ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(path, "cache")
        self._ttl = ttl
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Summary: Return a cached payload if it is younger than the TTL.

        Importance: Expiration is evaluated on read, so no sweeper is needed.
        Alternatives: Evict expired entries in a background task.
        """

        entry = self.read().get("cache", {}).get(key)
        if not isinstance(entry, dict) or "timestamp" not in entry:
            return None
        age_ms = self._clock() * 1000 - float(entry["timestamp"])
        if age_ms >= self._ttl.total_seconds() * 1000:
            return None
        return entry.get("data")

    def put(self, key: str, payload: Any) -> None:
        """Summary: Store a payload under a key with the current timestamp.

        Importance: Persists expensive results across process restarts.
        Alternatives: Cache only within a single request.
        """

        timestamp = int(self._clock() * 1000)

        def _apply(document: Document) -> Document:
            document.setdefault("cache", {})[key] = {"data": payload, "timestamp": timestamp}
            return document

        self.update(_apply)


class StorageContext:
    """Summary: Explicitly constructed bundle of the seven document collections.

    Importance: Replaces module-level singletons so tests get isolated storage.
    Alternatives: Global storage instances imported by each service.
    """

    def __init__(self, data_dir: str | Path, cache_ttl: timedelta = DEFAULT_CACHE_TTL) -> None:
        self._data_dir = Path(data_dir)
        self.messages = JsonCollection(self._file("messages"), "messages")
        self.users = JsonCollection(self._file("users"), "users")
        self.channels = JsonCollection(self._file("channels"), "channels")
        self.tags = JsonCollection(self._file("tags"), "tags")
        self.summaries = JsonCollection(self._file("summaries"), "summaries")
        self.associations = JsonCollection(self._file("associations"), "associations")
        self.cache = CacheCollection(self._file("cache"), ttl=cache_ttl)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def collections(self) -> list[JsonCollection]:
        """Summary: Return all collections in a fixed order.

        Importance: Supports initialization, backups, and stats loops.
        Alternatives: Enumerate attributes reflectively.
        """

        return [
            self.messages,
            self.users,
            self.channels,
            self.tags,
            self.summaries,
            self.associations,
            self.cache,
        ]

    def initialize(self) -> None:
        """Summary: Seed missing documents with their default shapes.

        Importance: Ensures every document exists on first access.
        Alternatives: Create documents lazily on first write.
        """

        self._data_dir.mkdir(parents=True, exist_ok=True)
        for collection in self.collections():
            if not collection.path.exists():
                collection.write(default_document(collection.name))
                logger.info("Seeded %s.", collection.path)

    def backup(self, day: str | None = None) -> Path:
        """Summary: Copy every document into a dated backup directory.

        Importance: Provides a manual restore point before risky operations.
        Alternatives: Rely on filesystem snapshots.
        """

        stamp = day or datetime.now(timezone.utc).date().isoformat()
        backup_dir = self._data_dir / "backups" / stamp
        backup_dir.mkdir(parents=True, exist_ok=True)
        for collection in self.collections():
            if collection.path.exists():
                shutil.copy2(collection.path, backup_dir / f"{collection.name}.json")
        logger.info("Backed up documents to %s.", backup_dir)
        return backup_dir

    def stats(self) -> dict[str, dict[str, Any]]:
        """Summary: Report size, modification time, and record count per document.

        Importance: Gives operators a quick view of storage health.
        Alternatives: Inspect the data directory manually.
        """

        stats: dict[str, dict[str, Any]] = {}
        for collection in self.collections():
            if not collection.path.exists():
                stats[collection.name] = {"size": 0, "last_modified": None, "record_count": 0}
                continue
            file_stats = collection.path.stat()
            records = collection.read().get(collection.name)
            stats[collection.name] = {
                "size": file_stats.st_size,
                "last_modified": datetime.fromtimestamp(
                    file_stats.st_mtime, tz=timezone.utc
                ).isoformat(),
                "record_count": len(records) if isinstance(records, (list, dict)) else 0,
            }
        return stats

    def _file(self, name: str) -> Path:
        return self._data_dir / f"{name}.json"
