"""Short-lived read-through cache with a single invalidation entry point.

Used by the metadata store to avoid re-reading the whole metadata table on
every lookup. Entries expire after a fixed TTL; every successful write goes
through ``invalidate``. When a refresh fails, a stale entry is served rather
than failing the read.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

from remindlist.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    loaded_at: float


class ReadThroughCache(Generic[K, V]):
    """Process-local TTL cache in front of an async loader."""

    def __init__(
        self,
        loader: Callable[[K], Awaitable[V]],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[K, _Entry[V]] = {}
        self._stale: dict[K, V] = {}

    async def get(self, key: K, *, force_refresh: bool = False) -> V:
        """Return the cached value, reloading it when missing or expired.

        Raises:
            StoreUnavailable: if the loader fails and no previous value exists.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and not force_refresh and now - entry.loaded_at < self._ttl:
            return entry.value

        try:
            value = await self._loader(key)
        except StoreUnavailable as exc:
            if key not in self._stale:
                raise
            logger.warning("Serving stale cache for %r after refresh failure: %s", key, exc)
            return self._stale[key]

        self._entries[key] = _Entry(value=value, loaded_at=now)
        self._stale[key] = value
        return value

    def invalidate(self, key: K | None = None) -> None:
        """Drop one entry (or all) so the next get reloads from the store.

        The last loaded value is still kept as an outage fallback.
        """
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
