"""Filter strategies and filter compilation (core domain).

A filter binds handlers to one or more hooks to customize resolution,
caching or formatting. Filters do not know about each other; the only
ordering between them is the priority of the handlers they register.
"""

from __future__ import annotations

import itertools
import re
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple, Union

from core.hooks import DEFAULT_PRIORITY, Handler, Hook, ProbabilityHooks
from core.models import Ask, FilterOwned

DEFAULT_FORCE_MARKER = "$force"

# Pattern filters turn their tag into a number before other numeric handlers
# (such as inversion) look at the probability.
OWNED_NUMBER_PRIORITY = 50

_HUNDRED = Decimal(100)
_TAG_COUNTER = itertools.count(1)

Keyword = Union[str, re.Pattern]


class BaseFilter(ABC):
    """Self-registering strategy; remembers its handlers so it can unbind."""

    def __init__(self) -> None:
        self._bound: List[Tuple[Hook, Handler]] = []

    @property
    def is_bound(self) -> bool:
        return bool(self._bound)

    def _register(self, hook: Hook, handler: Handler, priority: int = DEFAULT_PRIORITY) -> None:
        hook.add(handler, priority)
        self._bound.append((hook, handler))

    @abstractmethod
    def bind(self, hooks: ProbabilityHooks) -> None:
        ...

    def unbind(self) -> None:
        for hook, handler in self._bound:
            hook.remove(handler)
        self._bound.clear()


class PatternFilter(BaseFilter):
    """Claim asks whose raw query matches a regular expression.

    Claimed asks get a fixed luck message and a fixed percentage.
    """

    def __init__(self, pattern: Keyword, luck: str, percentage: Union[int, float, Decimal, str] = 0) -> None:
        super().__init__()
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.luck = luck
        self.percentage = Decimal(str(percentage))
        self.owned = FilterOwned(f"{type(self).__name__}#{next(_TAG_COUNTER)}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pattern.pattern!r}, {self.luck!r}, {self.percentage})"

    def bind(self, hooks: ProbabilityHooks) -> None:
        self._register(hooks.resolve_probability, self._claim)
        self._register(hooks.to_luck, self._to_luck)
        self._register(hooks.to_number, self._to_number, OWNED_NUMBER_PRIORITY)

    def _claim(self, ask: Ask) -> Optional[bool]:
        if self.pattern.search(ask.raw_query):
            ask.probability = self.owned
            return True
        return None

    def _to_luck(self, ask: Ask) -> Optional[str]:
        if ask.probability == self.owned:
            return self.luck
        return None

    def _to_number(self, ask: Ask) -> None:
        if ask.probability == self.owned:
            ask.probability = self.percentage


class LiteralFilter(PatternFilter):
    """Pattern filter matching a literal string anywhere in the raw query."""

    def __init__(self, text: str, luck: str, percentage: Union[int, float, Decimal, str] = 0) -> None:
        super().__init__(re.compile(re.escape(text)), luck, percentage)
        self.text = text


def compile_keyword(keyword: Keyword) -> re.Pattern:
    """Compile a keyword; strings written as ``/.../`` are regular expressions."""

    if not isinstance(keyword, str):
        return keyword
    if len(keyword) > 2 and keyword.startswith("/") and keyword.endswith("/"):
        return re.compile(keyword[1:-1])
    return re.compile(re.escape(keyword))


class InversionFilter(BaseFilter):
    """Invert the probability once per keyword occurrence in the subject.

    Keyword occurrences are also removed from the displayed subject.
    """

    def __init__(self, keywords: Iterable[Keyword]) -> None:
        super().__init__()
        self.keywords = [compile_keyword(keyword) for keyword in keywords]
        for pattern in self.keywords:
            if pattern.search("") is not None:
                raise ValueError(f"Inversion keyword matches the empty string: {pattern.pattern!r}")

    def bind(self, hooks: ProbabilityHooks) -> None:
        self._register(hooks.to_number, self._invert)
        self._register(hooks.override_ask, self._strip)

    def _invert(self, ask: Ask) -> None:
        if not isinstance(ask.probability, Decimal):
            return
        text = ask.ask or ""
        probability = ask.probability
        for pattern in self.keywords:
            while pattern.search(text):
                text = pattern.sub("", text, count=1)
                probability = _HUNDRED - probability
        ask.probability = probability

    def _strip(self, ask: Ask) -> None:
        text = ask.ask or ""
        for pattern in self.keywords:
            text = pattern.sub("", text)
        ask.ask = text


class ForceFreshFilter(BaseFilter):
    """Asks whose raw query ends with the marker bypass the cache entirely."""

    def __init__(self, marker: str = DEFAULT_FORCE_MARKER) -> None:
        super().__init__()
        self.marker = marker
        self._pattern = re.compile(re.escape(marker) + r"$")

    def bind(self, hooks: ProbabilityHooks) -> None:
        self._register(hooks.override_ask, self._strip_marker)
        self._register(hooks.store_cache, self._veto_store)
        self._register(hooks.fetch_cache, self._skip_fetch)

    def is_forced(self, raw_query: str) -> bool:
        return self._pattern.search(raw_query) is not None

    def _strip_marker(self, ask: Ask) -> None:
        ask.ask = self._pattern.sub("", ask.ask or "")

    def _veto_store(self, ask: Ask) -> Optional[bool]:
        if self.is_forced(ask.raw_query):
            return False
        return None

    def _skip_fetch(self, raw_query: str, user_id: int) -> Optional[bool]:
        if self.is_forced(raw_query):
            return False
        return None


def _build_filter(entry: dict) -> BaseFilter:
    kind = entry.get("type")
    if kind == "regexp":
        flags = re.IGNORECASE if entry.get("ignore_case", False) else 0
        return PatternFilter(re.compile(entry["pattern"], flags), entry["luck"], entry.get("percentage", 0))
    if kind == "string":
        return LiteralFilter(entry["text"], entry["luck"], entry.get("percentage", 0))
    if kind == "invert":
        keywords = entry.get("keywords") or []
        if not keywords:
            raise ValueError("invert filter needs at least one keyword")
        return InversionFilter(keywords)
    if kind == "force_fresh":
        return ForceFreshFilter(entry.get("marker") or DEFAULT_FORCE_MARKER)
    raise ValueError(f"Unsupported filter type: {kind}")


def build_filters(filters_config: Iterable[dict]) -> List[BaseFilter]:
    """Build filters from config entries, skipping disabled ones."""

    built: List[BaseFilter] = []
    for entry in filters_config:
        if not entry.get("enabled", True):
            continue
        built.append(_build_filter(entry))
    return built


def bind_filters(filters: Iterable[BaseFilter], hooks: ProbabilityHooks) -> None:
    """Bind filters in order; same-priority handlers run in binding order."""

    for item in filters:
        item.bind(hooks)
