"""Web file cache: keeps registered remote objects mirrored locally.

Two operations are meant to be driven repeatedly by external timers:

- validity_scan(): decides, per entry, whether the local copy is fresh,
  stale or missing; announces fresh copies and dispatches fetches for the
  rest.
- completion_poll(): consumes finished fetches and announces entries whose
  local copy became usable.

All bookkeeping (the registry's entries and the pending-fetch list) is
guarded by a single lock that is never held across network transfers; the
lock covers only opening the temporary copy before a fetch is scheduled.
"""

import logging
import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from webfilecache.base.registry import Registry
from webfilecache.base.source import FetchOutcome
from webfilecache.cache.config import CacheConfig, get_global_config
from webfilecache.cache.metadata import CacheMetadata
from webfilecache.cache.signals import Signal
from webfilecache.cache.validation import conditional_key, get_age, get_validity_remaining
from webfilecache.entry import CacheEntry, ReadyNotification
from webfilecache.errors import CacheError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Value returned by a fetch task that ran to a status."""

    identifier: Hashable
    outcome: FetchOutcome


@dataclass
class PendingFetch:
    """An entry identifier linked to its in-flight fetch task."""

    identifier: Hashable
    future: Future
    last_known_good: Optional[datetime] = None


class WebFileCache:
    """Orchestrates validity scans, asynchronous fetches and notifications.

    The cache owns its Registry, which owns the LocalStore and RemoteSource.
    Each entry is announced on ``item_ready`` once when its local copy first
    becomes usable, and again whenever new content is committed.

    Examples:
        >>> cache = WebFileCache.from_config(config, items=["map.png"])
        >>> cache.item_ready.connect(lambda n: print(n.identifier))
        >>> cache.validity_scan()
        True
        >>> cache.wait_for_pending()
        >>> cache.completion_poll()
        map.png
        False
    """

    def __init__(
        self,
        registry: Registry,
        config: Optional[CacheConfig] = None,
        executor: Optional[Executor] = None,
    ):
        """Initialize web file cache.

        Args:
            registry: Entries with their store and source
            config: Cache configuration (defaults if None)
            executor: Executor for fetch tasks; a thread pool of
                config.max_workers threads is created and owned if None
        """
        self.config = config or CacheConfig()
        self._registry = registry
        self._lock = threading.Lock()
        self._pending: List[PendingFetch] = []
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="webfilecache"
        )
        self._tick_slots: List[Tuple[Any, Callable[..., None]]] = []
        self._closed = False

        self.item_ready = Signal()

        self.metadata: Optional[CacheMetadata] = None
        if self.config.track_stats:
            self.metadata = CacheMetadata(self.config.stats_path, self.config.namespace)

    @classmethod
    def from_config(
        cls, config: Optional[CacheConfig] = None, items: Optional[Iterable[str]] = None
    ) -> "WebFileCache":
        """Build a cache on the local filesystem fed from the web.

        Args:
            config: Cache configuration (uses global if None)
            items: Source keys to register; each is also its identifier

        Raises:
            CacheError: If no source URI is configured or the store cannot
                be created
        """
        from webfilecache.sources.web import WebSource
        from webfilecache.storage.backend import FileSystemStore

        config = config or get_global_config()
        if not config.source_uri:
            raise CacheError("No source URI configured")

        store = FileSystemStore(config.cache_dir, config.namespace)
        source = WebSource(
            config.source_uri, config.validity, timeout=config.request_timeout
        )
        registry = Registry.from_names(store, source, items or [])
        return cls(registry, config)

    @property
    def registry(self) -> Registry:
        return self._registry

    def __enter__(self) -> "WebFileCache":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ==================== Registration ====================

    def register(
        self, identifier: Hashable, source_key: str, display_name: str = ""
    ) -> CacheEntry:
        """Add an entry to the registry.

        Raises:
            ValueError: If identifier is already registered
        """
        entry = CacheEntry(source_key, display_name)
        with self._lock:
            self._registry.register(identifier, entry)
        return entry

    # ==================== Driving ====================

    def connect(self, future_check: Any, validity_check: Any) -> None:
        """Subscribe to two external tick sources.

        Args:
            future_check: Tick source that triggers completion_poll()
            validity_check: Tick source that triggers validity_scan()

        Tick sources are objects with a ``connect(callable)`` method, such as
        Signal. Tick arguments are ignored.
        """

        def on_future_check(*_args, **_kwargs) -> None:
            self.completion_poll()

        def on_validity_check(*_args, **_kwargs) -> None:
            self.validity_scan()

        future_check.connect(on_future_check)
        validity_check.connect(on_validity_check)
        self._tick_slots.extend(
            [(future_check, on_future_check), (validity_check, on_validity_check)]
        )

    def disconnect(self) -> None:
        """Unsubscribe from all tick sources connected with connect()."""
        for tick_source, slot in self._tick_slots:
            tick_source.disconnect(slot)
        self._tick_slots = []

    def validity_scan(self) -> bool:
        """Check every entry and dispatch fetches for missing or stale ones.

        Fresh entries that were never announced are announced immediately,
        without network access. Never raises.

        Returns:
            True if fetches are pending
        """
        ready: List[ReadyNotification] = []
        with self._lock:
            for identifier, entry in self._registry:
                notification = self._check_entry(identifier, entry)
                if notification is not None:
                    ready.append(notification)
            self._flush_metadata()
            pending = bool(self._pending)
        self._emit(ready)
        return pending

    def fetch_item(self, identifier: Hashable) -> bool:
        """Run the validity decision for a single entry.

        Raises:
            KeyError: If identifier is not registered

        Returns:
            True if fetches are pending
        """
        with self._lock:
            entry = self._registry.get(identifier)
            notification = self._check_entry(identifier, entry)
            self._flush_metadata()
            pending = bool(self._pending)
        self._emit([notification] if notification is not None else [])
        return pending

    def completion_poll(self) -> bool:
        """Consume finished fetches and announce entries that became usable.

        Unfinished fetches are left pending for a later poll; this never
        blocks on a running fetch and never raises.

        Returns:
            True if fetches are still pending
        """
        ready: List[ReadyNotification] = []
        with self._lock:
            still_pending = []
            for pending in self._pending:
                if not pending.future.done():
                    still_pending.append(pending)
                    continue
                notification = self._complete(pending)
                if notification is not None:
                    ready.append(notification)
            self._pending = still_pending
            self._flush_metadata()
            pending = bool(self._pending)
        self._emit(ready)
        return pending

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def wait_for_pending(self, timeout: Optional[float] = None) -> bool:
        """Block until all currently pending fetches finish.

        Args:
            timeout: Maximum seconds to wait (None waits indefinitely)

        Returns:
            True if every pending fetch finished within timeout
        """
        with self._lock:
            futures = [p.future for p in self._pending]
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    # ==================== Internals ====================

    def _check_entry(
        self, identifier: Hashable, entry: CacheEntry
    ) -> Optional[ReadyNotification]:
        """Decide what to do with one entry. Caller holds the lock."""
        if entry.fetch_in_flight:
            logger.debug(f"Fetch of {entry.source_key!r} already in flight")
            return None

        store = self._registry.store
        last_known_good = None
        found = store.exists(entry)
        if found:
            try:
                modified = store.modified_time(entry)
            except OSError as e:
                logger.error(f"Cannot read cache time of {entry.source_key!r}: {e}")
                return None
            last_known_good = conditional_key(
                modified, self._registry.source.validity_window()
            )

        if not found or last_known_good is not None:
            self._dispatch(identifier, entry, last_known_good)
            return None

        if entry.mark_processed():
            if self.metadata is not None:
                self.metadata.record_cache_hit()
            return self._notification(identifier, entry, via="cache")
        return None

    def _dispatch(
        self,
        identifier: Hashable,
        entry: CacheEntry,
        last_known_good: Optional[datetime],
    ) -> None:
        """Open the temporary copy and submit a fetch task. Caller holds the lock.

        If the temporary copy cannot be opened no task is scheduled; the entry
        stays missing or stale and is retried on the next scan.
        """
        store = self._registry.store
        try:
            sink = store.open_for_write(entry, temporary=True)
        except (OSError, ValueError) as e:
            logger.error(f"Can not write to cache {entry.source_key!r}: {e}")
            if self.metadata is not None:
                self.metadata.record_failure(str(identifier), entry.source_key)
            return

        try:
            future = self._executor.submit(
                self._fetch_task, identifier, entry.snapshot(), sink, last_known_good
            )
        except RuntimeError as e:
            # Executor already shut down
            logger.error(f"Cannot schedule fetch of {entry.source_key!r}: {e}")
            sink.close()
            self._discard_quietly(entry)
            return

        entry.fetch_in_flight = True
        self._pending.append(PendingFetch(identifier, future, last_known_good))
        if self.metadata is not None:
            self.metadata.record_fetch_scheduled(str(identifier), entry.source_key)
        if last_known_good is None:
            logger.debug(f"Fetching {entry.source_key!r}")
        else:
            logger.debug(
                f"Revalidating {entry.source_key!r} modified since {last_known_good}"
            )

    def _fetch_task(
        self,
        identifier: Hashable,
        entry: CacheEntry,
        sink: BinaryIO,
        last_known_good: Optional[datetime],
    ) -> Optional[FetchResult]:
        """Fetch one entry into sink and apply the outcome to the store.

        Runs on a worker thread without the lock; entry is a snapshot and
        sink is the already opened temporary copy, which this task closes.

        Returns:
            FetchResult, or None if the local store could not be updated
        """
        store = self._registry.store
        source = self._registry.source

        try:
            with sink:
                outcome = source.fetch(entry, sink, last_known_good)
        except OSError as e:
            logger.error(f"Error closing temporary copy of {entry.source_key!r}: {e}")
            self._discard_quietly(entry)
            return None
        except Exception:
            self._discard_quietly(entry)
            raise

        try:
            if outcome.is_success:
                store.commit(entry)
            else:
                store.discard_temporary(entry)
                if outcome.is_not_modified:
                    store.touch_validity(entry, self.config.not_modified_extension)
        except OSError as e:
            logger.error(
                f"Cannot update cache {entry.source_key!r} "
                f"after status {outcome.status}: {e}"
            )
            self._discard_quietly(entry)
            return None

        return FetchResult(identifier, outcome)

    def _discard_quietly(self, entry: CacheEntry) -> None:
        try:
            self._registry.store.discard_temporary(entry)
        except OSError as e:
            logger.warning(f"Failed to clean up temporary copy of {entry.source_key!r}: {e}")

    def _complete(self, pending: PendingFetch) -> Optional[ReadyNotification]:
        """Apply a finished fetch to its entry. Caller holds the lock."""
        entry = self._registry.get(pending.identifier)
        entry.fetch_in_flight = False

        try:
            result = pending.future.result()
        except (CancelledError, Exception) as e:
            logger.error(
                f"Fetch task for {entry.source_key!r} failed: {e!r}",
                exc_info=not isinstance(e, CancelledError),
            )
            result = None

        if result is None:
            logger.warning(f"Fetch of {entry.source_key!r} failed")
            if self.metadata is not None:
                self.metadata.record_failure(str(pending.identifier), entry.source_key)
            return None

        outcome = result.outcome
        entry.last_status = outcome.status
        if self.metadata is not None:
            self.metadata.record_outcome(
                str(pending.identifier), entry.source_key, outcome.status
            )

        if outcome.is_success or (outcome.is_not_modified and not entry.first_processed):
            entry.mark_processed()
            return self._notification(pending.identifier, entry, via="network")
        if outcome.is_failure:
            logger.warning(
                f"Fetch of {entry.source_key!r} failed with status {outcome.status}"
                + (f": {outcome.error}" if outcome.error else "")
            )
        return None

    def _notification(
        self, identifier: Hashable, entry: CacheEntry, via: str
    ) -> ReadyNotification:
        if self.metadata is not None:
            self.metadata.record_notification(str(identifier), entry.source_key)
        logger.info(f"{entry.label} ready ({via})")
        return ReadyNotification(identifier, via)

    def _emit(self, notifications: List[ReadyNotification]) -> None:
        # Listeners run without the lock so they may call back into the cache
        for notification in notifications:
            self.item_ready.emit(notification)

    def _flush_metadata(self) -> None:
        if self.metadata is None:
            return
        try:
            self.metadata.save()
        except OSError as e:
            logger.warning(f"Cache statistics update failed: {e}")

    # ==================== Access and diagnostics ====================

    def open(self, identifier: Hashable) -> BinaryIO:
        """Open the committed local copy of an entry for reading.

        Raises:
            KeyError: If identifier is not registered
            OSError: If there is no local copy
        """
        with self._lock:
            entry = self._registry.get(identifier)
        return self._registry.store.open_for_read(entry)

    def status(self, identifier: Hashable) -> Dict[str, Any]:
        """Get cache status for an entry.

        Raises:
            KeyError: If identifier is not registered
        """
        with self._lock:
            entry = self._registry.get(identifier).snapshot()
        store = self._registry.store
        window = self._registry.source.validity_window()

        info: Dict[str, Any] = {
            "identifier": identifier,
            "source_key": entry.source_key,
            "display_name": entry.display_name,
            "cached": store.exists(entry),
            "location": store.location_hint(entry),
            "last_status": entry.last_status,
            "first_processed": entry.first_processed,
            "fetch_in_flight": entry.fetch_in_flight,
            "modified": None,
            "age_seconds": None,
            "fresh": False,
            "validity_remaining": 0,
        }
        if info["cached"]:
            try:
                modified = store.modified_time(entry)
            except OSError as e:
                logger.warning(f"Cannot read cache time of {entry.source_key!r}: {e}")
                return info
            info["modified"] = modified.isoformat()
            info["age_seconds"] = int(get_age(modified).total_seconds())
            info["fresh"] = conditional_key(modified, window) is None
            info["validity_remaining"] = get_validity_remaining(modified, window)
        return info

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Statistics dict
        """
        with self._lock:
            stats: Dict[str, Any] = (
                self.metadata.get_stats() if self.metadata is not None else {}
            )
            stats["entries"] = len(self._registry)
            stats["pending"] = len(self._pending)
        stats["namespace"] = self.config.namespace
        stats["validity_seconds"] = int(
            self._registry.source.validity_window().total_seconds()
        )
        return stats

    def close(self) -> None:
        """Stop reacting to ticks and release the executor and source."""
        if self._closed:
            return
        self._closed = True
        self.disconnect()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        with self._lock:
            self._flush_metadata()
        self._registry.source.close()
