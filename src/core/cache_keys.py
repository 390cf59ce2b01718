"""Cache key helpers (core domain)."""

from __future__ import annotations

import hashlib

KEY_SEPARATOR = "@"


def hash_query(raw_query: str) -> str:
    """Return the SHA-256 hex digest of a raw query.

    The digest is stable across restarts so fetch/store hooks can compute the
    same keys outside the process.
    """

    return hashlib.sha256(raw_query.encode("utf-8")).hexdigest()


def build_cache_key(raw_query: str, user_id: int) -> str:
    """Return the cache key for a (query, user) pair."""

    return f"{hash_query(raw_query)}{KEY_SEPARATOR}{user_id}"
