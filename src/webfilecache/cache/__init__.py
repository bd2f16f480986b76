"""Web file caching system.

This module keeps registered remote objects mirrored in a local store and
refreshes them according to the source's validity window.

Key components:
- WebFileCache: Validity scans, asynchronous fetches, ready notifications
- CacheConfig: Configuration management
- CacheMetadata: Statistics file
- Signal: Observer primitive for ready events and timer ticks
"""

from webfilecache.cache.config import CacheConfig
from webfilecache.cache.manager import FetchResult, WebFileCache
from webfilecache.cache.signals import Signal
from webfilecache.errors import CacheError, CachePermissionError

__all__ = [
    "WebFileCache",
    "CacheConfig",
    "FetchResult",
    "Signal",
    "CacheError",
    "CachePermissionError",
]
