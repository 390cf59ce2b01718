"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CacheConfig:
    """Probability cache settings."""

    max_entries: int = 10000
    ttl_seconds: int = 86400
    clear_timezone: Optional[str] = None
