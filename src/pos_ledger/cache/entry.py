"""Timestamped cache slot shared by the metadata and row caches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was fetched.

    Attributes:
        value: The cached value.
        fetched_at: Clock reading (seconds) when the value was stored.
    """

    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        """Seconds elapsed since the value was fetched."""
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Return True while the entry is younger than ttl."""
        return self.age(now) < ttl
