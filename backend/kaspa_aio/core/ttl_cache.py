"""Single-value cache with an explicit expiry.

Used for the runtime-availability flag and the last working node port.
Each entry carries its own ``expires_at`` so freshness is decided in one
place instead of ad hoc timestamp comparisons at every call site.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    expires_at: float | None  # None = never expires

    def is_fresh(self, now: float) -> bool:
        return self.expires_at is None or now < self.expires_at


class TtlCache(Generic[T]):
    """Holds at most one value, optionally expiring *ttl_seconds* after it was set."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: CacheEntry[T] | None = None

    def get(self) -> CacheEntry[T] | None:
        """Return the current entry, or None when empty or expired."""
        entry = self._entry
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            self._entry = None
            return None
        return entry

    def set(self, value: T) -> CacheEntry[T]:
        expires_at = None if self.ttl_seconds is None else self._clock() + self.ttl_seconds
        self._entry = CacheEntry(value=value, expires_at=expires_at)
        return self._entry

    def clear(self) -> None:
        self._entry = None

    @property
    def value(self) -> T | None:
        entry = self.get()
        return None if entry is None else entry.value
