"""In-process TTL cache for assembled intent context bundles."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Structural cache key.

    ``tenant`` embeds business and user id so two tenants can never share an
    entry; ``intent`` keeps intents apart; ``discriminator`` is whatever the
    intent's cache-key capability returned (thread id, threshold, window...).
    """

    tenant: str
    intent: str
    discriminator: str

    @classmethod
    def for_request(
        cls,
        business_id: str | None,
        user_id: str | None,
        intent: str,
        discriminator: str,
    ) -> CacheKey:
        return cls(f"{business_id or '-'}:{user_id or '-'}", intent, discriminator)

    def __str__(self) -> str:
        return f"{self.tenant}|{self.intent}|{self.discriminator}"


class ContextCache:
    """
    Bounded in-memory cache with a fixed TTL.

    Entries are ``{key: (value, expire_timestamp)}``.  Expired entries are
    dropped lazily on read; when the table is full the entry closest to
    expiry is evicted.  Advisory only: a miss always means "recompute".
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of every entry.
            max_entries: Upper bound on stored entries.
            clock: Monotonic time source, injectable for tests.
        """
        self._ttl = float(ttl_seconds)
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._mem: dict[CacheKey, tuple[Any, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: CacheKey) -> Any | None:
        """
        Get a value from cache.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found / expired.
        """
        entry = self._mem.get(key)
        if entry is None:
            return None
        value, expire_at = entry
        if self._clock() < expire_at:
            return value
        del self._mem[key]
        return None

    def set(self, key: CacheKey, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Set a value in cache.

        Args:
            key: Cache key.
            value: Value to cache.
            ttl_seconds: Override of the default TTL.
        """
        ttl = self._ttl if ttl_seconds is None else float(ttl_seconds)
        if key not in self._mem and len(self._mem) >= self._max_entries:
            self._evict()
        self._mem[key] = (value, self._clock() + ttl)

    def clear(self) -> None:
        """Drop every entry."""
        self._mem.clear()

    @property
    def size(self) -> int:
        """Number of stored entries (including expired-but-unread ones)."""
        return len(self._mem)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, (_, exp) in self._mem.items() if exp <= now]
        for k in expired:
            del self._mem[k]
        if len(self._mem) < self._max_entries:
            return
        victim = min(self._mem, key=lambda k: self._mem[k][1])
        del self._mem[victim]
        logger.debug(f"Context cache full ({self._max_entries}); evicted {victim}")
