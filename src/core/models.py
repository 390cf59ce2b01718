"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class FilterOwned:
    """Probability placeholder owned by a filter.

    The ask's luck/percentage text is produced by the filter that tagged it;
    the value must not be interpreted numerically by anyone else.
    """

    tag: str


Probability = Union[Decimal, FilterOwned]


@dataclass(frozen=True)
class Probabilities:
    """Rendered representations of one ask. None means the kind cannot render."""

    luck: Optional[str]
    percentage: Optional[str]
    coin: Optional[str]
    dice6: Optional[str]

    def as_dict(self) -> dict[str, Optional[str]]:
        return {
            "luck": self.luck,
            "percentage": self.percentage,
            "coin": self.coin,
            "dice6": self.dice6,
        }


@dataclass
class Ask:
    """One unit of work: a query, its user and the computed probability.

    ``user_id`` and ``raw_query`` are fixed at creation; ``ask`` is the
    displayed subject and starts as the raw query.
    """

    user_id: int
    raw_query: str
    ask: Optional[str] = None
    probability: Optional[Probability] = None
    reverted: Optional[bool] = None
    id: Optional[str] = None
    probabilities: Optional[Probabilities] = field(default=None)

    def __post_init__(self) -> None:
        if self.ask is None:
            self.ask = self.raw_query

    def __setattr__(self, name: str, value) -> None:
        if name in ("user_id", "raw_query") and name in self.__dict__:
            raise AttributeError(f"{name} is read-only")
        super().__setattr__(name, value)
