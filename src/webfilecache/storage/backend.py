"""Filesystem-backed local store.

Committed objects live at ``<root>/<namespace>/<name>`` and their staging
copies at ``<root>/<namespace>/.<name>``, so the temporary location is always
derivable from the committed one without extra state.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional, Union

from webfilecache.base.store import LocalStore
from webfilecache.entry import CacheEntry
from webfilecache.errors import CacheError, CachePermissionError

logger = logging.getLogger(__name__)

TEMP_PREFIX = "."


class FileSystemStore(LocalStore):
    """LocalStore on the local filesystem.

    Examples:
        >>> store = FileSystemStore('/tmp/cache', 'maps')
        >>> with store.open_for_write(entry, temporary=True) as f:
        ...     f.write(b'data')
        >>> store.commit(entry)
        >>> store.exists(entry)
        True
    """

    def __init__(self, root: Union[str, Path], namespace: str):
        """Initialize the store and create its directory.

        Args:
            root: Root directory shared by all caches
            namespace: Directory under root used by this cache

        Raises:
            CachePermissionError: If the store directory cannot be created
                for lack of permissions
            CacheError: If the store directory cannot be created
        """
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        self.root = Path(root).expanduser() / namespace
        self.namespace = namespace
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot create cache store directory at {self.root}: {e}"
            ) from e
        except OSError as e:
            logger.error(f"Error creating cache store directory: {e}")
            raise CacheError(f"Cannot access cache store at {self.root}: {e}") from e
        logger.debug(f"Cache store at {self.root}")

    def store_exists(self) -> bool:
        """Check that the store root exists and is a directory."""
        return self.root.is_dir()

    def translate_name(self, entry: CacheEntry) -> str:
        """Map an entry to its relative file name within the store.

        Subclasses may override this to rename or nest entries. The default
        uses the entry's source key unchanged.
        """
        return entry.source_key

    def item_path(self, entry: CacheEntry) -> Path:
        """Get the committed path of an entry.

        Raises:
            ValueError: If the translated name escapes the store root
        """
        name = self.translate_name(entry)
        relative = PurePosixPath(name)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Invalid cache item name: {name!r}")
        return self.root.joinpath(*relative.parts)

    def temp_path(self, entry: CacheEntry) -> Path:
        """Get the staging path of an entry (reserved-prefix sibling)."""
        path = self.item_path(entry)
        return path.with_name(TEMP_PREFIX + path.name)

    def local_item_exists(self, entry: CacheEntry) -> Optional[Path]:
        """Get the committed path if the entry is present locally."""
        if self.exists(entry):
            return self.item_path(entry)
        return None

    def exists(self, entry: CacheEntry) -> bool:
        try:
            return self.item_path(entry).is_file()
        except (OSError, ValueError) as e:
            logger.debug(f"Cannot check {entry.source_key}: {e}")
            return False

    def modified_time(self, entry: CacheEntry) -> datetime:
        st = self.item_path(entry).stat()
        return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)

    def open_for_write(self, entry: CacheEntry, temporary: bool) -> BinaryIO:
        path = self.temp_path(entry) if temporary else self.item_path(entry)
        path.parent.mkdir(parents=True, exist_ok=True)
        return open(path, "wb")

    def open_for_read(self, entry: CacheEntry) -> BinaryIO:
        return open(self.item_path(entry), "rb")

    def commit(self, entry: CacheEntry) -> None:
        # os.replace is atomic when both paths are on the same filesystem
        os.replace(self.temp_path(entry), self.item_path(entry))

    def discard_temporary(self, entry: CacheEntry) -> None:
        self.temp_path(entry).unlink(missing_ok=True)

    def touch_validity(self, entry: CacheEntry, extend_by: timedelta) -> None:
        path = self.item_path(entry)
        if extend_by == timedelta(0):
            os.utime(path, None)
            return
        st = path.stat()
        os.utime(path, (st.st_atime, st.st_mtime + extend_by.total_seconds()))

    def location_hint(self, entry: CacheEntry) -> Optional[str]:
        try:
            return str(self.item_path(entry))
        except ValueError:
            return None
