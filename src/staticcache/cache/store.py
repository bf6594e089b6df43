"""
=============================================================================
FILE CACHE
=============================================================================

Maps canonical request paths ("/static/app.js") to FileEntry objects.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        TWO BACKING VARIANTS                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   IN-PROCESS MAPPING                 EXTERNAL STORE                 │
    │   ──────────────────                 ──────────────                 │
    │   FileCache()                        FileCache(lru_cache_object)    │
    │   FileCache({"/a.js": entry})        anything with .get() / .set()  │
    │                                                                      │
    │   Plain dict, shared with the        Capacity, eviction and thread  │
    │   caller when one is passed in       safety are the store's job     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The variant is chosen once, at construction. A plain dict always counts
as the in-process mapping even though it also has a .get() method.
"""

import logging
from typing import Any, Dict, Iterator, Optional

from .entry import FileEntry


logger = logging.getLogger(__name__)


class FileCache:
    """
    Key-value store of FileEntry objects.

    No eviction: entries live as long as the cache (or the injected store
    decides otherwise).
    """

    def __init__(self, store: Any = None):
        """
        Args:
            store: None for a fresh in-process dict, a dict to use in
                   place (pre-seeded entries are served), or an external
                   store exposing callable get(key) and set(key, value).
        """
        self._store: Optional[Any] = None
        self._map: Optional[Dict[str, FileEntry]] = None

        if (
            store is not None
            and not isinstance(store, dict)
            and callable(getattr(store, "get", None))
            and callable(getattr(store, "set", None))
        ):
            self._store = store
            logger.debug(f"Using external file store {type(store).__name__}")
        else:
            self._map = store if store is not None else {}

    @property
    def is_external(self) -> bool:
        return self._store is not None

    def get(self, key: str) -> Optional[FileEntry]:
        if self._store is not None:
            return self._store.get(key)
        return self._map.get(key)

    def set(self, key: str, entry: FileEntry) -> None:
        if self._store is not None:
            self._store.set(key, entry)
        else:
            self._map[key] = entry

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def keys(self) -> Iterator[str]:
        """
        Iterate cached keys.

        Only the in-process mapping can be enumerated; external stores
        yield whatever their own keys() returns, or nothing.
        """
        if self._map is not None:
            return iter(list(self._map.keys()))

        keys = getattr(self._store, "keys", None)
        return iter(list(keys())) if callable(keys) else iter(())

    def __len__(self) -> int:
        return sum(1 for _ in self.keys())
