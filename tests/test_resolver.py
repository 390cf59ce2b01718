from __future__ import annotations

import random
from decimal import Decimal

from core.hooks import ProbabilityHooks
from core.models import Ask, FilterOwned
from core.resolver import ProbabilityResolver


def _resolver(hooks: ProbabilityHooks, seed: int = 7) -> ProbabilityResolver:
    return ProbabilityResolver(hooks, rng=random.Random(seed))


def test_unclaimed_ask_gets_random_probability() -> None:
    hooks = ProbabilityHooks()
    resolver = _resolver(hooks)

    for _ in range(200):
        ask = Ask(user_id=1, raw_query="q")
        resolver.resolve(ask)
        assert isinstance(ask.probability, Decimal)
        assert Decimal(0) <= ask.probability <= Decimal(100)
        assert ask.probability.as_tuple().exponent >= -4
        assert isinstance(ask.reverted, bool)


def test_claimed_ask_keeps_filter_probability() -> None:
    hooks = ProbabilityHooks()
    owned = FilterOwned("test")
    rejected: list[Ask] = []

    def claim(ask: Ask):
        ask.probability = owned
        return True

    hooks.resolve_probability.add(claim)
    hooks.reject_random_probability.add(lambda ask: rejected.append(ask) or True)

    ask = Ask(user_id=1, raw_query="q")
    _resolver(hooks).resolve(ask)

    assert ask.probability == owned
    assert isinstance(ask.reverted, bool)
    assert rejected == []


def test_claiming_handler_may_set_reverted() -> None:
    hooks = ProbabilityHooks()

    def claim(ask: Ask):
        ask.probability = Decimal("42")
        ask.reverted = False
        return True

    hooks.resolve_probability.add(claim)
    resolver = _resolver(hooks)

    for _ in range(20):
        ask = Ask(user_id=1, raw_query="q")
        resolver.resolve(ask)
        assert ask.reverted is False
        assert ask.probability == Decimal("42")


def test_rejection_rerolls_until_accepted() -> None:
    hooks = ProbabilityHooks()
    seen: list[Decimal] = []
    reverted_seen: list[bool] = []

    def reject_three_times(ask: Ask):
        seen.append(ask.probability)
        reverted_seen.append(ask.reverted)
        return True if len(seen) <= 3 else None

    hooks.reject_random_probability.add(reject_three_times)

    ask = Ask(user_id=1, raw_query="q")
    _resolver(hooks).resolve(ask)

    assert len(seen) == 4
    assert ask.probability == seen[-1]
    assert len(set(reverted_seen)) == 1
    assert ask.reverted == reverted_seen[0]


def test_new_ask_id_is_hex() -> None:
    ask_id = _resolver(ProbabilityHooks()).new_ask_id()
    assert ask_id
    int(ask_id, 16)
