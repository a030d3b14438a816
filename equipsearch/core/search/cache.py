from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    inserted_at: float


class TTLCache(Generic[T]):
    """In-process result cache.

    Freshness is checked when an entry is read; stale entries are skipped
    but stay in place until overwritten or ``clear()`` is called.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str, ttl_seconds: float) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at >= ttl_seconds:
            return None
        return entry.value

    def age(self, key: str) -> float | None:
        entry = self._entries.get(key)
        return None if entry is None else self._clock() - entry.inserted_at

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, object]:
        return {"size": len(self._entries), "entries": list(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)
