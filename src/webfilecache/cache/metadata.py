"""Cache statistics metadata."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from typing_extensions import TypedDict

from webfilecache.entry import HTTP_NOT_MODIFIED, HTTP_OK

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"


class EntryRecord(TypedDict, total=False):
    """Statistics kept for a single entry."""

    source_key: str
    last_status: int
    last_checked: Optional[str]  # ISO 8601 timestamp of last completed fetch
    last_notified: Optional[str]  # ISO 8601 timestamp of ready notification
    fetch_count: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


STAT_COUNTERS = (
    "cache_hits",
    "fetches",
    "commits",
    "not_modified",
    "failures",
    "notifications",
)


def _check_shape(data: Any) -> None:
    """Raise ValueError unless data looks like a current metadata file."""
    if not isinstance(data, dict):
        raise ValueError("metadata is not a JSON object")
    if data.get("schema_version") != SCHEMA_VERSION:
        raise ValueError("schema version mismatch")
    items = data.get("items")
    if not isinstance(items, dict) or not all(
        isinstance(record, dict) and isinstance(record.get("fetch_count"), int)
        for record in items.values()
    ):
        raise ValueError("missing or invalid items")
    stats = data.get("stats")
    if not isinstance(stats, dict) or not all(
        isinstance(stats.get(name), int) for name in STAT_COUNTERS
    ):
        raise ValueError("missing or invalid counters")


class CacheMetadata:
    """Statistics for one cache namespace.

    The metadata file (<namespace>.meta.json) tracks:
    - Counters (cache hits, fetches, commits, not-modified, failures,
      notifications)
    - Per-entry records (last status, timestamps, fetch count)

    Record methods only update memory; call save() to write the file. The
    caller is responsible for serializing access.
    """

    def __init__(self, meta_path: Path, namespace: str):
        """Initialize cache metadata manager.

        Args:
            meta_path: Path of the metadata file
            namespace: Cache namespace the statistics belong to
        """
        self.meta_path = Path(meta_path)
        self.namespace = namespace
        self._data: Dict[str, Any] = {}
        self._dirty = False
        self._load()

    def _load(self) -> None:
        """Load metadata from file or create new."""
        if self.meta_path.exists():
            try:
                with open(self.meta_path, "r") as f:
                    self._data = json.load(f)
                _check_shape(self._data)
            except (json.JSONDecodeError, ValueError, OSError) as e:
                # Corrupted metadata, start fresh
                logger.warning(f"Discarding unreadable cache metadata {self.meta_path}: {e}")
                self._initialize_new()
        else:
            self._initialize_new()

    def _initialize_new(self) -> None:
        """Initialize new metadata structure."""
        self._data = {
            "schema_version": SCHEMA_VERSION,
            "namespace": self.namespace,
            "created_at": _now(),
            "items": {},
            "stats": {name: 0 for name in STAT_COUNTERS},
        }
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def save(self) -> None:
        """Save metadata to file if anything changed."""
        if not self._dirty:
            return
        self.meta_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.meta_path.with_name("." + self.meta_path.name)
        with open(temp_path, "w") as f:
            json.dump(self._data, f, indent=2)
        temp_path.replace(self.meta_path)
        self._dirty = False

    def _item(self, identifier: str, source_key: str) -> EntryRecord:
        items = self._data["items"]
        if identifier not in items:
            items[identifier] = EntryRecord(
                source_key=source_key,
                last_status=0,
                last_checked=None,
                last_notified=None,
                fetch_count=0,
            )
        return items[identifier]

    def _bump(self, counter: str) -> None:
        self._data["stats"][counter] += 1
        self._dirty = True

    def record_cache_hit(self) -> None:
        """Record an entry served fresh from the local store."""
        self._bump("cache_hits")

    def record_fetch_scheduled(self, identifier: str, source_key: str) -> None:
        """Record that a fetch task was dispatched."""
        self._item(identifier, source_key)["fetch_count"] += 1
        self._bump("fetches")

    def record_outcome(self, identifier: str, source_key: str, status: int) -> None:
        """Record the status of a completed fetch.

        Args:
            identifier: Entry identifier
            source_key: Entry source key
            status: Fetch status code
        """
        item = self._item(identifier, source_key)
        item["last_status"] = status
        item["last_checked"] = _now()
        if status == HTTP_OK:
            self._bump("commits")
        elif status == HTTP_NOT_MODIFIED:
            self._bump("not_modified")
        else:
            self._bump("failures")

    def record_failure(self, identifier: str, source_key: str) -> None:
        """Record a fetch that produced no result."""
        self._item(identifier, source_key)["last_checked"] = _now()
        self._bump("failures")

    def record_notification(self, identifier: str, source_key: str) -> None:
        """Record a ready notification."""
        self._item(identifier, source_key)["last_notified"] = _now()
        self._bump("notifications")

    def get_item(self, identifier: str) -> Optional[EntryRecord]:
        """Get the record of an entry, or None if never seen."""
        return self._data["items"].get(identifier)

    def get_stats(self) -> Dict[str, int]:
        """Get a copy of the counters."""
        return self._data["stats"].copy()

    def get_all_items(self) -> Dict[str, EntryRecord]:
        """Get a copy of all entry records."""
        return self._data["items"].copy()
