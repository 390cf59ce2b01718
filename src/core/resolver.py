"""Probability resolution (core domain)."""

from __future__ import annotations

import random
import time
from decimal import Decimal
from typing import Optional, Tuple

from core.hooks import ProbabilityHooks
from core.models import Ask

# Candidates are drawn with four decimal digits of precision over [0, 1).
_PRECISION_STEPS = 10_000
_HUNDRED = Decimal(100)


class ProbabilityResolver:
    """Assign a probability and a reverted flag to a fresh ask.

    Filters get the first word through ``resolve_probability``; when none of
    them claims the ask, a random candidate is assigned and re-rolled while any
    ``reject_random_probability`` handler objects.
    """

    def __init__(self, hooks: ProbabilityHooks, rng: Optional[random.Random] = None) -> None:
        self._hooks = hooks
        self._rng = rng or random.Random()

    def random_probability(self) -> Tuple[bool, Decimal]:
        """Return a fresh (reverted, probability) candidate."""

        reverted = self._rng.random() < 0.5
        fraction = Decimal(self._rng.randrange(_PRECISION_STEPS)) / _PRECISION_STEPS
        return reverted, fraction * _HUNDRED

    def resolve(self, ask: Ask) -> None:
        # Drawn before any filter runs so claimed asks still get a reverted flag.
        reverted, probability = self.random_probability()

        if self._hooks.resolve_probability.emit(ask):
            if ask.reverted is None:
                ask.reverted = reverted
            return

        ask.probability = probability
        ask.reverted = reverted
        while self._hooks.reject_random_probability.emit(ask):
            _, ask.probability = self.random_probability()

    def new_ask_id(self) -> str:
        """Return a short opaque id used to address render variants."""

        return format(int(time.time() * 1000 + self._rng.random() * 10000), "x")
