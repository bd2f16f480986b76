"""Exceptions raised by webfilecache."""


class CacheError(Exception):
    """Base exception for cache-related errors."""

    pass


class CachePermissionError(CacheError):
    """Raised when cache directory permissions are insufficient."""

    pass
