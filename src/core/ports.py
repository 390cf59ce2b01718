"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts the processor depends on so that the
in-memory cache can be swapped without touching the pipeline.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.models import Ask


class AskCachePort(Protocol):
    """Cache operations required by the core pipeline."""

    def fetch(self, user_id: int, raw_query: str) -> Optional[Ask]:
        ...

    def store(self, ask: Ask) -> bool:
        ...

    def clear(self) -> int:
        ...
