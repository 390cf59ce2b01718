"""Core ask processing pipeline.

This module is integration-agnostic. It wires the hooks, resolver, formatter
and cache together and leaves presentation to adapters.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Optional

from core.formatter import ProbabilityFormatter
from core.hooks import ProbabilityHooks
from core.models import Ask
from core.ports import AskCachePort
from core.resolver import ProbabilityResolver

LOGGER = logging.getLogger(__name__)


class AskProcessor:
    """Orchestrates cache lookup, resolution, rendering, and storage."""

    def __init__(
        self,
        hooks: ProbabilityHooks,
        cache: AskCachePort,
        resolver: Optional[ProbabilityResolver] = None,
        formatter: Optional[ProbabilityFormatter] = None,
    ) -> None:
        self._hooks = hooks
        self._cache = cache
        self._resolver = resolver or ProbabilityResolver(hooks)
        self._formatter = formatter or ProbabilityFormatter(hooks)

    def handle(self, user_id: int, raw_query: str) -> Ask:
        """Return the resolved ask for one inbound query."""

        cached = self._cache.fetch(user_id, raw_query)
        if cached is not None:
            LOGGER.debug("Cache hit for user %s", user_id)
            return cached

        ask = Ask(user_id=user_id, raw_query=raw_query)
        self._resolver.resolve(ask)
        ask.id = self._resolver.new_ask_id()

        # Renders read the subject as typed (inversion keywords are counted on
        # it); whether coin and dice6 render follows the displayed subject.
        displayed = copy.copy(ask)
        self._hooks.override_ask.emit(displayed)
        ask.probabilities = self._formatter.render(ask, has_subject=bool(displayed.ask))
        ask.ask = displayed.ask
        self._cache.store(ask)

        LOGGER.debug(
            "Resolved ask for user %s, query: %s, response: %s",
            user_id,
            raw_query,
            json.dumps(
                {kind: text for kind, text in ask.probabilities.as_dict().items() if text is not None},
                ensure_ascii=False,
            ),
        )
        return ask
