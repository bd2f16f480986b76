"""webfilecache: Mirror remote files locally and refresh them on a validity window."""

__version__ = "0.1.0"

from webfilecache.base import FetchOutcome, LocalStore, Registry, RemoteSource
from webfilecache.cache import CacheConfig, CacheError, Signal, WebFileCache
from webfilecache.entry import CacheEntry, ReadyNotification
from webfilecache.sources import WebSource
from webfilecache.storage import FileSystemStore

__all__ = [
    "WebFileCache",
    "CacheConfig",
    "CacheEntry",
    "ReadyNotification",
    "Registry",
    "LocalStore",
    "RemoteSource",
    "FetchOutcome",
    "FileSystemStore",
    "WebSource",
    "Signal",
    "CacheError",
    "__version__",
]
