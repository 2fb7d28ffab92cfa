"""
Short-lived in-memory cache for provider lookups.

Owned and injected per adapter (no module-level cache). Entries expire after
ttl_sec; concurrent writers for the same key are last-write-wins, which is
fine because entries are plain value lookups.
"""

from __future__ import annotations

import time
from typing import Callable, Generic, TypeVar

from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")

DEFAULT_CACHE_TTL_SEC = 10.0


class TTLCache(Generic[V]):
    def __init__(
        self,
        ttl_sec: float = DEFAULT_CACHE_TTL_SEC,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = max(0.0, float(ttl_sec))
        self._clock = clock
        self._entries: dict[str, tuple[V, float]] = {}

    @property
    def ttl_sec(self) -> float:
        return self._ttl

    def get(self, key: str) -> V | None:
        """Cached value if present and younger than ttl_sec; expired entries are dropped."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self._ttl:
            self._entries.pop(key, None)
            return None
        logger.debug("cache_hit", key=key)
        return value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def clear(self, key: str | None = None) -> None:
        """Drop one key, or every entry when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
