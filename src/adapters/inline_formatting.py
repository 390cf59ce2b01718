"""Inline result formatting helpers.

Keeping message bodies here keeps the Telegram handler thin and lets the
texts be tested without a client.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import List, Optional

from core.models import Ask

ERROR_TEXT = "生成失敗。"


@dataclass(frozen=True)
class InlineResultSpec:
    """One inline article ready to be handed to the transport."""

    id: str
    title: str
    text: str


# (kind, id suffix, title, needs a subject)
_RESULT_KINDS = (
    ("luck", "_l", "未卜先知", False),
    ("percentage", "_p", "概率論！", False),
    ("coin", "_c", "擲硬幣！", True),
    ("dice6", "_d", "六面骰！", True),
)


def format_display_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    return f"{first_name or ''} {last_name or ''}".strip()


def _greeting(user_id: int, display_name: str) -> str:
    return f'您好，<a href="tg://user?id={user_id}">{html.escape(display_name)}</a>\n'


def format_result_text(ask: Ask, kind: str, display_name: str) -> Optional[str]:
    """Return the HTML message for one representation, or None if it cannot render."""

    rendered = getattr(ask.probabilities, kind, None) if ask.probabilities else None
    if rendered is None:
        return None

    subject = ask.ask or ""
    output = _greeting(ask.user_id, display_name)
    if subject:
        if kind == "luck":
            result = rendered
        elif kind == "percentage":
            result = f"此事有 {rendered}% {'不發生' if ask.reverted else '發生'}"
        elif kind == "coin":
            result = f"硬幣是{rendered}"
        elif kind == "dice6":
            result = f"擲出了數字 {rendered}"
        else:
            result = "伺服器似乎出錯了"
        return f"{output}所求事項：{html.escape(subject.strip())}\n結果：{result}"

    if kind == "luck":
        return f"{output}汝的今日運勢：{rendered}"
    if kind == "percentage":
        return f"{output}汝今天{'倒大霉' if ask.reverted else '行大運'}概率是 {rendered}%"
    return None


def build_inline_results(ask: Ask, display_name: str) -> List[InlineResultSpec]:
    """Build the inline articles for a resolved ask."""

    has_subject = bool(ask.ask)
    results: List[InlineResultSpec] = []
    for kind, suffix, title, needs_subject in _RESULT_KINDS:
        if needs_subject and not has_subject:
            continue
        text = format_result_text(ask, kind, display_name)
        if text is None:
            continue
        results.append(InlineResultSpec(id=f"{ask.id}{suffix}", title=title, text=text))
    return results
