"""Storage module for local persistence of cached objects."""

from webfilecache.storage.backend import FileSystemStore

__all__ = ["FileSystemStore"]
