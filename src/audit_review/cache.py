"""Per pull request snapshot cache with individual expiry."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    fetched_at: datetime


class SnapshotCache(Generic[T]):
    """Keeps the latest good value per key.

    ``fresh`` honours the TTL; ``latest`` ignores it so a caller can fall back
    to a stale value when a refresh fails. Nothing but ``put``, ``invalidate``
    and ``clear`` ever replaces or drops an entry.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def age(self, key: str) -> float | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return self._clock() - entry.stored_at

    def fresh(self, key: str) -> T | None:
        age = self.age(key)
        if age is None or age >= self.ttl_seconds:
            return None
        logger.debug("Serving cached data for %s (age: %.0fs)", key, age)
        return self._entries[key].value

    def latest(self, key: str) -> T | None:
        entry = self._entries.get(key)
        return entry.value if entry else None

    def fetched_at(self, key: str) -> datetime | None:
        """Wall-clock time the current entry for *key* was stored."""
        entry = self._entries.get(key)
        return entry.fetched_at if entry else None

    def put(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), fetched_at=datetime.now(timezone.utc))
        logger.debug("Cached data for %s", key)

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Cache invalidated for %s", key)

    def clear(self) -> None:
        self._entries.clear()
