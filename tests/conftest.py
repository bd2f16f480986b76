"""Shared fixtures and fakes for the webfilecache test suite."""

import os
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from webfilecache.base.registry import Registry
from webfilecache.base.source import FetchOutcome, RemoteSource
from webfilecache.cache.config import CacheConfig
from webfilecache.cache.manager import WebFileCache
from webfilecache.entry import CacheEntry
from webfilecache.storage.backend import FileSystemStore


class ScriptedSource(RemoteSource):
    """RemoteSource answering from a table of canned responses.

    responses maps source_key -> (status, body). Unlisted keys answer
    200 with b"data". Set ``gate`` to a threading.Event to hold fetches
    until it is set.
    """

    def __init__(self, validity: timedelta = timedelta(hours=1)):
        super().__init__(validity)
        self.responses: Dict[str, Tuple[int, bytes]] = {}
        self.calls: List[Tuple[str, object]] = []
        self.gate: Optional[threading.Event] = None
        self.raise_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def fetch(self, entry, sink, last_known_good=None):
        with self._lock:
            self.calls.append((entry.source_key, last_known_good))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.raise_error is not None:
            raise self.raise_error
        status, body = self.responses.get(entry.source_key, (200, b"data"))
        if status == 200:
            sink.write(body)
            return FetchOutcome(status, len(body))
        return FetchOutcome(status)


def set_age(path: Path, age: timedelta) -> None:
    """Backdate a file's modification time by age."""
    t = time.time() - age.total_seconds()
    os.utime(path, (t, t))


def seed(
    store: FileSystemStore,
    name: str,
    data: bytes = b"old",
    age: timedelta = timedelta(0),
) -> Path:
    """Write a committed copy of name into store with the given age."""
    path = store.item_path(CacheEntry(name))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    set_age(path, age)
    return path


def make_response(status: int, chunks=()) -> MagicMock:
    """Create a mock requests response usable as a context manager."""
    resp = MagicMock()
    resp.status_code = status
    resp.iter_content.return_value = list(chunks)
    resp.__enter__.return_value = resp
    return resp


@pytest.fixture
def cache_root(tmp_path):
    return tmp_path / "root"


@pytest.fixture
def store(cache_root):
    """Create a filesystem store under a temporary root."""
    return FileSystemStore(cache_root, "maps")


@pytest.fixture
def source():
    return ScriptedSource()


@pytest.fixture
def config(cache_root):
    """Create test cache configuration."""
    return CacheConfig(cache_dir=cache_root, namespace="maps", max_workers=4)


@pytest.fixture
def make_cache(store, source, config):
    """Factory for WebFileCache instances closed at teardown."""
    caches = []

    def _make(names=("map.png",), src=None, st=None, cfg=None):
        registry = Registry.from_names(st or store, src or source, names)
        cache = WebFileCache(registry, cfg or config)
        caches.append(cache)
        return cache

    yield _make

    for cache in caches:
        cache.close()
