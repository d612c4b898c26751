"""
In-process TTL cache for validated story results.

Entries live for the lifetime of the process. Expiry is checked on every
read and expired entries are evicted lazily; there is no background sweep
and no size bound.

Two concurrent misses on the same key may both generate a story. Whichever
``set`` lands last wins, which is accepted behavior.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from .core.types import CacheEntry

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class StoryCache:
    """Key-value store with per-entry TTL and an injectable clock.

    Attributes:
        default_ttl: TTL in seconds used when ``set`` gets none
        clock: Zero-argument callable returning the current time in seconds
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = default_ttl
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            self._entries.pop(key, None)
            return None
        return entry.data

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:
        self._entries[key] = CacheEntry(
            data=data,
            timestamp=self.clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
