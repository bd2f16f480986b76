"""Remote source interface and fetch outcomes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import BinaryIO, Optional

from webfilecache.entry import CacheEntry, is_not_modified, is_success

DEFAULT_VALIDITY = timedelta(hours=1)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a single fetch attempt.

    Attributes:
        status: HTTP status code, or TRANSPORT_FAILURE for local exceptions
        bytes_written: Number of bytes written to the sink
        error: Description of the transport failure, if any
    """

    status: int
    bytes_written: int = 0
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return is_success(self.status)

    @property
    def is_not_modified(self) -> bool:
        return is_not_modified(self.status)

    @property
    def is_failure(self) -> bool:
        return not (self.is_success or self.is_not_modified)


class RemoteSource(ABC):
    """Abstract base class for sources of cached objects.

    A source asserts one validity window for every entry it serves, and
    fetches entries into a writable sink. Implementations must never raise
    from fetch(): transport problems are reported as an outcome status so the
    caller can treat every result uniformly.
    """

    def __init__(self, validity: timedelta = DEFAULT_VALIDITY):
        if validity < timedelta(0):
            raise ValueError(f"validity must not be negative, got {validity}")
        self._validity = validity

    def validity_window(self) -> timedelta:
        """Duration a local copy may be used without re-validation."""
        return self._validity

    @abstractmethod
    def fetch(
        self,
        entry: CacheEntry,
        sink: BinaryIO,
        last_known_good: Optional[datetime] = None,
    ) -> FetchOutcome:
        """Fetch an entry from the source.

        Args:
            entry: Entry to fetch
            sink: Binary stream to write new content to
            last_known_good: Timestamp of the local copy. When given, the
                request is conditional and the source may answer not-modified

        Returns:
            FetchOutcome carrying the status code
        """
        pass

    def close(self) -> None:
        """Release any resources held by the source."""
        pass
