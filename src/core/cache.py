"""Probability cache (core domain).

Resolved asks are kept per (query, user) so repeated identical queries are
stable for a day. The store is bounded, evicts least-recently-used entries and
expires entries after a fixed TTL; the app layer additionally clears it in
full once a day at midnight.
"""

from __future__ import annotations

import copy
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from cachetools import TTLCache

from core.cache_keys import build_cache_key
from core.config import CacheConfig
from core.hooks import ProbabilityHooks
from core.models import Ask

LOGGER = logging.getLogger(__name__)


class ProbabilityCache:
    """Memory-resident ask cache with hook-overridable fetch and store."""

    def __init__(
        self,
        hooks: ProbabilityHooks,
        config: Optional[CacheConfig] = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        config = config or CacheConfig()
        self._hooks = hooks
        self._store: TTLCache = TTLCache(
            maxsize=config.max_entries,
            ttl=config.ttl_seconds,
            timer=timer,
        )

    def __len__(self) -> int:
        self._store.expire()
        return len(self._store)

    def fetch(self, user_id: int, raw_query: str) -> Optional[Ask]:
        """Return a shallow copy of the cached ask, or None on a miss.

        A fetch hook may supply an ask of its own, or return False to force
        a miss.
        """

        supplied = self._hooks.fetch_cache.emit(raw_query, user_id)
        if supplied is False:
            return None
        if supplied is not None:
            return copy.copy(supplied)

        cached = self._store.get(build_cache_key(raw_query, user_id))
        if cached is None:
            return None
        return copy.copy(cached)

    def store(self, ask: Ask) -> bool:
        """Snapshot ``ask`` into the cache unless a store hook vetoes it."""

        if self._hooks.store_cache.emit(ask) is False:
            LOGGER.debug("Cache store vetoed for user %s", ask.user_id)
            return False

        # Re-inserting an existing key refreshes both its TTL and its recency.
        self._store[build_cache_key(ask.raw_query, ask.user_id)] = copy.deepcopy(ask)
        return True

    def clear(self) -> int:
        """Drop every entry and return how many were dropped."""

        self._store.expire()
        dropped = len(self._store)
        self._store.clear()
        return dropped


def seconds_until_next_clear(now: datetime) -> float:
    """Seconds from ``now`` until the next midnight in ``now``'s timezone."""

    tomorrow = (now + timedelta(days=1)).date()
    midnight = datetime.combine(tomorrow, datetime.min.time(), tzinfo=now.tzinfo)
    delta = midnight.astimezone(timezone.utc) - now.astimezone(timezone.utc)
    return max(delta.total_seconds(), 0.0)
