"""In-memory TTL cache and client-side pagination helpers."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable, Sequence
from typing import Generic, TypeVar

from .models import PaginatedResult

logger = logging.getLogger(__name__)

V = TypeVar("V")
T = TypeVar("T")


class TTLCache(Generic[V]):
    """Key/value store whose entries go stale after ``ttl_seconds``.

    There is no invalidation API; entries are replaced on the next ``set``
    after they expire. Not thread-safe; callers share one event loop.
    """

    def __init__(
        self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, V]] = {}

    def get(self, key: Hashable) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            logger.debug("Cache entry %s is stale", key)
            return None
        return value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = (self._clock(), value)

    def __len__(self) -> int:
        return len(self._entries)


def paginate(
    items: Sequence[T], skip: int, page_size: int, is_exact: bool = True
) -> PaginatedResult[T]:
    """Slice ``items[skip:skip + page_size]``; total is the full list length."""
    skip = max(skip, 0)
    page = tuple(items[skip : skip + max(page_size, 0)])
    return PaginatedResult(items=page, total_count=len(items), is_exact=is_exact)
