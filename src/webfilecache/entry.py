"""Cache entry records and fetch status codes."""

from dataclasses import dataclass
from typing import Any, Hashable

# Status codes the orchestrator acts on
HTTP_OK = 200
HTTP_NOT_MODIFIED = 304
TRANSPORT_FAILURE = 599  # local transport/protocol exception, not a remote status

_IMMUTABLE_FIELDS = ("source_key", "display_name")


def is_success(status: int) -> bool:
    """Return True if status means new content was written."""
    return status == HTTP_OK


def is_not_modified(status: int) -> bool:
    """Return True if status means the remote copy is unchanged."""
    return status == HTTP_NOT_MODIFIED


class CacheEntry:
    """A single remote object tracked by the cache.

    Attributes:
        source_key: Name of the object at the remote source (immutable)
        display_name: Name to present to users (immutable)
        last_status: Status of the most recent completed fetch (0 = never)
        first_processed: True once the entry has been announced ready. This
            latch never resets.
        fetch_in_flight: True while a fetch task for this entry is pending

    Examples:
        >>> entry = CacheEntry("map.png", "World map")
        >>> entry.mark_processed()
        True
        >>> entry.mark_processed()
        False
    """

    def __init__(self, source_key: str, display_name: str = ""):
        if not source_key:
            raise ValueError("source_key must be a non-empty string")
        object.__setattr__(self, "source_key", source_key)
        object.__setattr__(self, "display_name", display_name or "")
        self.last_status = 0
        self.first_processed = False
        self.fetch_in_flight = False

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_FIELDS:
            raise AttributeError(f"{name} is immutable")
        if name == "first_processed" and not value and self.__dict__.get(name):
            raise AttributeError("first_processed cannot be cleared")
        object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return (
            f"CacheEntry(source_key={self.source_key!r}, "
            f"display_name={self.display_name!r}, last_status={self.last_status}, "
            f"first_processed={self.first_processed})"
        )

    @property
    def label(self) -> str:
        """Display name if set, otherwise the source key."""
        return self.display_name or self.source_key

    def mark_processed(self) -> bool:
        """Latch first_processed.

        Returns:
            True if this call made the transition, False if already set
        """
        if self.first_processed:
            return False
        self.first_processed = True
        return True

    def snapshot(self) -> "CacheEntry":
        """Return a detached copy for use outside the orchestrator lock."""
        copy = CacheEntry(self.source_key, self.display_name)
        copy.last_status = self.last_status
        if self.first_processed:
            copy.first_processed = True
        copy.fetch_in_flight = self.fetch_in_flight
        return copy


@dataclass(frozen=True)
class ReadyNotification:
    """Event emitted when an entry's local copy becomes usable.

    Attributes:
        identifier: Registry identifier of the entry
        via: 'cache' for a fresh local copy, 'network' after a fetch
    """

    identifier: Hashable
    via: str = "network"
