"""Base interfaces: local store, remote source and the entry registry."""

from webfilecache.base.registry import Registry
from webfilecache.base.source import FetchOutcome, RemoteSource
from webfilecache.base.store import LocalStore

__all__ = ["LocalStore", "RemoteSource", "FetchOutcome", "Registry"]
