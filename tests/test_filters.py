from __future__ import annotations

import random
import re
from decimal import Decimal

import pytest

from core.filters import (
    ForceFreshFilter,
    InversionFilter,
    LiteralFilter,
    PatternFilter,
    bind_filters,
    build_filters,
)
from core.formatter import ProbabilityFormatter
from core.hooks import ProbabilityHooks
from core.models import Ask, FilterOwned
from core.resolver import ProbabilityResolver


def _pipeline(*filters):
    hooks = ProbabilityHooks()
    bind_filters(filters, hooks)
    resolver = ProbabilityResolver(hooks, rng=random.Random(3))
    formatter = ProbabilityFormatter(hooks)
    return hooks, resolver, formatter


def test_pattern_filter_claims_matching_query() -> None:
    _, resolver, formatter = _pipeline(PatternFilter(r"^世界末日", "天機不可洩漏", 30))
    ask = Ask(user_id=1, raw_query="世界末日何時來")
    resolver.resolve(ask)

    assert isinstance(ask.probability, FilterOwned)
    assert formatter.luck(ask) == "天機不可洩漏"
    assert formatter.percentage(ask) == ("70.00" if ask.reverted else "30.00")
    assert formatter.coin(ask) == "反面"


def test_pattern_filter_ignores_other_queries() -> None:
    _, resolver, _ = _pipeline(PatternFilter(r"^世界末日", "天機不可洩漏"))
    ask = Ask(user_id=1, raw_query="今天會下雨嗎")
    resolver.resolve(ask)

    assert isinstance(ask.probability, Decimal)


def test_pattern_filters_own_distinct_tags() -> None:
    first = PatternFilter("a", "A")
    second = PatternFilter("b", "B")
    _, _, formatter = _pipeline(first, second)

    assert first.owned != second.owned
    ask = Ask(user_id=1, raw_query="b", probability=second.owned, reverted=False)
    assert formatter.luck(ask) == "B"


def test_literal_filter_escapes_text() -> None:
    _, resolver, _ = _pipeline(LiteralFilter("a.b", "literal"))

    matching = Ask(user_id=1, raw_query="xa.by")
    resolver.resolve(matching)
    assert isinstance(matching.probability, FilterOwned)

    other = Ask(user_id=1, raw_query="axb")
    resolver.resolve(other)
    assert isinstance(other.probability, Decimal)


def test_inversion_applies_once_per_occurrence() -> None:
    hooks, _, formatter = _pipeline(InversionFilter(["reverse"]))

    twice = Ask(user_id=1, raw_query="reverse reverse go", probability=Decimal("30"), reverted=False)
    assert formatter.percentage(twice) == "30.00"
    assert twice.probability == Decimal("30")

    hooks.override_ask.emit(twice)
    assert "reverse" not in twice.ask
    assert twice.ask.strip() == "go"

    once = Ask(user_id=1, raw_query="reverse go", probability=Decimal("10"), reverted=False)
    assert formatter.percentage(once) == "90.00"
    assert formatter.luck(once) == "大吉"


def test_inversion_accepts_regex_keywords() -> None:
    _, _, formatter = _pipeline(InversionFilter(["/不+/"]))
    ask = Ask(user_id=1, raw_query="會不會", probability=Decimal("20"), reverted=False)
    assert formatter.percentage(ask) == "80.00"


def test_inversion_applies_to_converted_pattern_percentage() -> None:
    # Bound before the pattern filter on purpose; conversion still runs first.
    _, resolver, formatter = _pipeline(InversionFilter(["不"]), LiteralFilter("樂透", "別做夢了", 20))
    ask = Ask(user_id=1, raw_query="樂透不中")
    resolver.resolve(ask)
    ask.reverted = False

    assert formatter.luck(ask) == "別做夢了"
    assert formatter.percentage(ask) == "80.00"


def test_inversion_rejects_empty_matching_keyword() -> None:
    with pytest.raises(ValueError):
        InversionFilter(["/x*/"])


def test_force_fresh_filter_strips_marker_and_vetoes_cache() -> None:
    hooks, _, _ = _pipeline(ForceFreshFilter())
    ask = Ask(user_id=1, raw_query="明天考試$force")

    hooks.override_ask.emit(ask)
    assert ask.ask == "明天考試"
    assert ask.raw_query == "明天考試$force"
    assert hooks.store_cache.emit(ask) is False
    assert hooks.fetch_cache.emit(ask.raw_query, 1) is False


def test_force_fresh_marker_must_be_trailing() -> None:
    hooks, _, _ = _pipeline(ForceFreshFilter())
    ask = Ask(user_id=1, raw_query="$force 明天考試")

    hooks.override_ask.emit(ask)
    assert ask.ask == "$force 明天考試"
    assert hooks.store_cache.emit(ask) is None


def test_unbind_removes_every_handler() -> None:
    filters = [
        PatternFilter("a", "A"),
        InversionFilter(["b"]),
        ForceFreshFilter("!fresh"),
    ]
    hooks, _, _ = _pipeline(*filters)
    assert sum(len(hook) for hook in hooks.all().values()) == 8

    for item in filters:
        assert item.is_bound
        item.unbind()
        assert not item.is_bound
    assert sum(len(hook) for hook in hooks.all().values()) == 0


def test_build_filters_from_config() -> None:
    filters = build_filters(
        [
            {"type": "regexp", "pattern": "^abc", "luck": "A", "percentage": 12.5, "ignore_case": True},
            {"type": "string", "text": "x.y", "luck": "X"},
            {"type": "invert", "keywords": ["不", "/沒有?/"]},
            {"type": "force_fresh"},
            {"type": "string", "text": "skip", "luck": "S", "enabled": False},
        ]
    )

    assert [type(item) for item in filters] == [PatternFilter, LiteralFilter, InversionFilter, ForceFreshFilter]
    assert filters[0].pattern.flags & re.IGNORECASE
    assert filters[0].percentage == Decimal("12.5")
    assert filters[1].pattern.search("axy") is None
    assert filters[3].marker == "$force"


@pytest.mark.parametrize(
    "entry",
    [
        {"type": "dice"},
        {"type": "invert", "keywords": []},
    ],
)
def test_build_filters_rejects_bad_entries(entry: dict) -> None:
    with pytest.raises(ValueError):
        build_filters([entry])
