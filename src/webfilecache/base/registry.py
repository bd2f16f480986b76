"""Registry of cache entries.

The registry owns the identifier -> CacheEntry map together with exactly one
LocalStore and one RemoteSource, fixed at construction. It holds no policy
and no locks; WebFileCache serializes access to it.
"""

from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

from webfilecache.base.source import RemoteSource
from webfilecache.base.store import LocalStore
from webfilecache.entry import CacheEntry


class Registry:
    """Owning container of cache entries, their store and their source.

    Examples:
        >>> registry = Registry(store, source)
        >>> registry.register("map", CacheEntry("map.png", "World map"))
        >>> registry.get("map").source_key
        'map.png'
        >>> "map" in registry
        True
    """

    def __init__(
        self,
        store: LocalStore,
        source: RemoteSource,
        entries: Optional[Dict[Hashable, CacheEntry]] = None,
    ):
        """Initialize a registry.

        Args:
            store: Local store for all entries
            source: Remote source for all entries
            entries: Optional initial identifier -> entry mapping
        """
        self._store = store
        self._source = source
        self._entries: Dict[Hashable, CacheEntry] = {}
        for identifier, entry in (entries or {}).items():
            self.register(identifier, entry)

    @classmethod
    def from_names(
        cls, store: LocalStore, source: RemoteSource, names: Iterable[str]
    ) -> "Registry":
        """Build a registry where each source key is also its identifier."""
        registry = cls(store, source)
        for name in names:
            registry.register(name, CacheEntry(name))
        return registry

    @property
    def store(self) -> LocalStore:
        return self._store

    @property
    def source(self) -> RemoteSource:
        return self._source

    def register(self, identifier: Hashable, entry: CacheEntry) -> None:
        """Add an entry.

        Raises:
            ValueError: If identifier is already registered
        """
        if identifier in self._entries:
            raise ValueError(
                f"Entry already registered for identifier: {identifier!r}. "
                f"Cannot register {entry.source_key!r}."
            )
        self._entries[identifier] = entry

    def get(self, identifier: Hashable) -> CacheEntry:
        """Get an entry by identifier.

        Raises:
            KeyError: If no entry is registered under identifier
        """
        if identifier not in self._entries:
            available = ", ".join(sorted(str(i) for i in self._entries))
            raise KeyError(
                f"No entry registered for identifier: {identifier!r}. "
                f"Available identifiers: {available}"
            )
        return self._entries[identifier]

    def list_identifiers(self) -> List[Hashable]:
        return list(self._entries)

    def __contains__(self, identifier: Hashable) -> bool:
        return identifier in self._entries

    def __iter__(self) -> Iterator[Tuple[Hashable, CacheEntry]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)
