"""Local store interface.

This module defines the abstract base class for durable local persistence of
cached objects. A store keeps a committed copy of each entry and a temporary
staging copy used by the write-then-rename idiom, so a reader never sees a
partially written committed copy.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import BinaryIO, Optional

from webfilecache.entry import CacheEntry


class LocalStore(ABC):
    """Abstract base class for local cache stores.

    Stores are responsible for:
    1. Reporting whether a committed copy exists (exists)
    2. Opening committed or temporary copies (open_for_write, open_for_read)
    3. Atomically promoting the temporary copy (commit)
    4. Dropping a temporary copy that produced nothing usable (discard_temporary)
    5. Adjusting the stored modification time (touch_validity)

    Examples:
        Create a custom store (minimal implementation):
        >>> class MemoryStore(LocalStore):
        ...     def exists(self, entry):
        ...         return entry.source_key in self._committed
        ...     ...
    """

    @abstractmethod
    def exists(self, entry: CacheEntry) -> bool:
        """Check if a committed copy of entry is present.

        A missing copy is a normal False result, never an exception.
        """
        pass

    @abstractmethod
    def modified_time(self, entry: CacheEntry) -> datetime:
        """Get the stored modification time of the committed copy (UTC).

        Raises:
            OSError: If the committed copy cannot be inspected
        """
        pass

    @abstractmethod
    def open_for_write(self, entry: CacheEntry, temporary: bool) -> BinaryIO:
        """Open the temporary or the committed location for binary writing.

        Raises:
            OSError: If the location cannot be opened
        """
        pass

    @abstractmethod
    def open_for_read(self, entry: CacheEntry) -> BinaryIO:
        """Open the committed copy for binary reading."""
        pass

    @abstractmethod
    def commit(self, entry: CacheEntry) -> None:
        """Atomically replace the committed copy with the temporary copy."""
        pass

    @abstractmethod
    def discard_temporary(self, entry: CacheEntry) -> None:
        """Remove the temporary copy without touching the committed copy."""
        pass

    @abstractmethod
    def touch_validity(self, entry: CacheEntry, extend_by: timedelta) -> None:
        """Refresh the stored modification time of the committed copy.

        Args:
            entry: Entry whose committed copy is touched
            extend_by: Zero to set the time to now, otherwise the amount to
                advance the stored time by
        """
        pass

    def location_hint(self, entry: CacheEntry) -> Optional[str]:
        """Human-readable location of the committed copy, for diagnostics."""
        return None
