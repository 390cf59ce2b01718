"""Prioritized hook registry (core domain).

A hook is a named extension point holding handlers keyed by a unique integer
priority. Emission walks handlers in ascending priority order:

- a handler returning None lets the next handler run;
- a handler returning the hook's ``stop_propagation`` sentinel ends the
  emission with an overall None result;
- any other return value ends the emission and becomes the hook's result.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Generic, Optional, TypeVar

R = TypeVar("R")

DEFAULT_PRIORITY = 100

Handler = Callable[..., Any]


class _StopPropagation:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return f"<stop_propagation of {self._name}>"


class Hook(Generic[R]):
    """Named extension point with first-meaningful-result-wins semantics."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: Dict[int, Handler] = {}
        # Private per instance; handlers can only obtain it from this hook.
        self.stop_propagation = _StopPropagation(name)

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"Hook({self.name!r}, handlers={len(self._handlers)})"

    def add(self, handler: Handler, priority: int = DEFAULT_PRIORITY) -> int:
        """Register ``handler`` and return the priority slot it landed on.

        Occupied slots are probed upward, so later registrants at the same
        priority run after earlier ones.
        """

        while priority in self._handlers:
            priority += 1
        self._handlers[priority] = handler
        return priority

    def remove(self, handler: Handler) -> bool:
        """Remove every slot holding ``handler``; return whether any was removed."""

        slots = [slot for slot, registered in self._handlers.items() if registered is handler]
        for slot in slots:
            del self._handlers[slot]
        return bool(slots)

    def emit(self, *args: Any) -> Optional[R]:
        """Run handlers in priority order and return the first meaningful result."""

        for slot in sorted(self._handlers):
            result = self._handlers[slot](*args)
            if result is self.stop_propagation:
                return None
            if result is not None:
                return result
        return None


class ProbabilityHooks:
    """The fixed set of extension points used by the probability pipeline.

    An instance is built once at startup and passed explicitly to the
    resolver, formatter, cache and filters.
    """

    def __init__(self) -> None:
        # handlers mutate the ask in place and return True to claim it
        self.resolve_probability: Hook[bool] = Hook("resolve_probability")
        # truthy result re-rolls a freshly generated probability
        self.reject_random_probability: Hook[bool] = Hook("reject_random_probability")
        # rewrites ask.ask (the displayed subject); results are ignored
        self.override_ask: Hook[None] = Hook("override_ask")

        self.to_luck: Hook[str] = Hook("to_luck")
        self.to_percentage: Hook[str] = Hook("to_percentage")
        self.to_coin: Hook[str] = Hook("to_coin")
        self.to_dice6: Hook[str] = Hook("to_dice6")
        # adjusts the working copy's probability before classification
        self.to_number: Hook[Any] = Hook("to_number")

        # an explicit False vetoes storage
        self.store_cache: Hook[bool] = Hook("store_cache")
        # handlers may supply an Ask for (raw_query, user_id)
        self.fetch_cache: Hook[Any] = Hook("fetch_cache")

    def all(self) -> Dict[str, Hook]:
        return {name: hook for name, hook in vars(self).items() if isinstance(hook, Hook)}
