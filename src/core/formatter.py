"""Probability formatting (core domain).

Each conversion works on a deep copy of the ask so hook handlers may mutate
it freely; the caller's ask is never changed. Every conversion returns a
string: values that cannot be classified are logged and replaced by a fixed
fallback text.
"""

from __future__ import annotations

import copy
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional, Sequence, Tuple

from core.hooks import Hook, ProbabilityHooks
from core.models import Ask, Probabilities

LOGGER = logging.getLogger(__name__)

LUCK_FALLBACK = "內部錯誤"
PERCENTAGE_FALLBACK = "??.??"
COIN_FALLBACK = "...等下，硬幣掉下桌子了啦！！！"
DICE6_FALLBACK = "...等下，這不是六面骰啊？！"

COIN_TAILS = "反面"
COIN_HEADS = "正面"

_ZERO = Decimal(0)
_HUNDRED = Decimal(100)
_CENTS = Decimal("0.01")

# (lower, upper, label): lower is exclusive except for the first band, upper
# is inclusive. Bands are tested in order, first match wins.
Band = Tuple[Decimal, Decimal, str]


def _bands(*rows: Tuple[str, str, str]) -> Tuple[Band, ...]:
    return tuple((Decimal(lower), Decimal(upper), label) for lower, upper, label in rows)


LUCK_BANDS = _bands(
    ("0", "12.5", "大凶"),
    ("12.5", "25", "凶"),
    ("25", "37.5", "小凶"),
    ("37.5", "62.5", "尚可"),
    ("62.5", "75", "小吉"),
    ("75", "87.5", "吉"),
    ("87.5", "100", "大吉"),
)

COIN_BANDS = _bands(
    ("0", "50", COIN_TAILS),
    ("50", "100", COIN_HEADS),
)

# The third band starts at 33.3 while the second ends at 33.33; values in
# (33.3, 33.33] land on face 2 because bands are tested in order.
DICE6_BANDS = _bands(
    ("0", "16.66", "1"),
    ("16.66", "33.33", "2"),
    ("33.3", "50", "3"),
    ("50", "66.66", "4"),
    ("66.66", "83.33", "5"),
    ("83.33", "100", "6"),
)


class UnclassifiableProbabilityError(ValueError):
    """A probability that is non-numeric or outside [0, 100] after all overrides."""

    def __init__(self, conversion: str, value: Any) -> None:
        super().__init__(f"{conversion} can't transport probability: {value!r}")
        self.conversion = conversion
        self.value = value


def as_decimal(value: Any) -> Optional[Decimal]:
    """Return ``value`` as a Decimal, or None when it is not numeric."""

    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return None if value.is_nan() else value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    return None


def classify(value: Decimal, bands: Sequence[Band]) -> Optional[str]:
    """Return the label of the first band containing ``value``."""

    for index, (lower, upper, label) in enumerate(bands):
        above_lower = value >= lower if index == 0 else value > lower
        if above_lower and value <= upper:
            return label
    return None


def _report(error: UnclassifiableProbabilityError) -> None:
    LOGGER.error("%s", error)


class ProbabilityFormatter:
    """Render an ask's probability as luck, percentage, coin and dice6 text."""

    def __init__(
        self,
        hooks: ProbabilityHooks,
        report_error: Callable[[UnclassifiableProbabilityError], None] = _report,
    ) -> None:
        self._hooks = hooks
        self._report_error = report_error

    def _prepare(self, ask: Ask, override: Hook[str]) -> Tuple[Ask, Optional[str], Any]:
        """Return (working copy, override text, numeric candidate)."""

        work = copy.deepcopy(ask)
        text = override.emit(work)
        if text is not None:
            return work, text, None
        number = self._hooks.to_number.emit(work)
        if number is None:
            number = work.probability
        return work, None, number

    def _fail(self, conversion: str, value: Any, fallback: str) -> str:
        self._report_error(UnclassifiableProbabilityError(conversion, value))
        return fallback

    def _banded(self, ask: Ask, override: Hook[str], bands: Sequence[Band], conversion: str, fallback: str) -> str:
        _, text, number = self._prepare(ask, override)
        if text is not None:
            return text
        value = as_decimal(number)
        label = classify(value, bands) if value is not None else None
        if label is None:
            return self._fail(conversion, number, fallback)
        return label

    def luck(self, ask: Ask) -> str:
        return self._banded(ask, self._hooks.to_luck, LUCK_BANDS, "probability_to_luck", LUCK_FALLBACK)

    def percentage(self, ask: Ask) -> str:
        """Render with two decimals, inverted when the ask is reverted."""

        work, text, number = self._prepare(ask, self._hooks.to_percentage)
        if text is not None:
            return text
        value = as_decimal(number)
        if value is not None:
            if work.reverted:
                value = _HUNDRED - value
            if _ZERO <= value <= _HUNDRED:
                return str(value.quantize(_CENTS, rounding=ROUND_HALF_UP))
        return self._fail("probability_to_percentage", number, PERCENTAGE_FALLBACK)

    def coin(self, ask: Ask) -> str:
        return self._banded(ask, self._hooks.to_coin, COIN_BANDS, "probability_to_coin", COIN_FALLBACK)

    def dice6(self, ask: Ask) -> str:
        return self._banded(ask, self._hooks.to_dice6, DICE6_BANDS, "probability_to_dice6", DICE6_FALLBACK)

    def render(self, ask: Ask, has_subject: Optional[bool] = None) -> Probabilities:
        """Render all four representations; coin and dice6 need a subject.

        ``has_subject`` defaults to whether ``ask.ask`` is non-empty.
        """

        if has_subject is None:
            has_subject = bool(ask.ask)
        return Probabilities(
            luck=self.luck(ask),
            percentage=self.percentage(ask),
            coin=self.coin(ask) if has_subject else None,
            dice6=self.dice6(ask) if has_subject else None,
        )
