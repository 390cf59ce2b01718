"""Telegram inline-query adapter.

This keeps Telethon-specific details out of the core pipeline: it maps an
inline query to (user_id, raw_query), runs it through the processor and
answers with HTML articles.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from telethon import Button, errors

from adapters.inline_formatting import (
    ERROR_TEXT,
    build_inline_results,
    format_display_name,
)
from core.models import Ask
from core.processor import AskProcessor

LOGGER = logging.getLogger(__name__)


def request_from_event(event) -> Tuple[int, str]:
    """Return (user_id, raw_query) for an InlineQuery event."""

    return int(event.query.user_id), event.text or ""


def build_buttons(ask: Ask) -> List[list]:
    """Keyboard shared by every article of one answer."""

    first_row = [Button.switch_inline("我也試試", "", same_peer=True)]
    if ask.raw_query:
        first_row.append(Button.switch_inline(ask.ask or ask.raw_query, ask.raw_query, same_peer=True))
    return [first_row, [Button.switch_inline("轉發", ask.raw_query)]]


class InlineQueryHandler:
    """Answer inline queries with the four divinations."""

    def __init__(self, processor: AskProcessor) -> None:
        self._processor = processor

    async def handle(self, event) -> None:
        user_id, raw_query = request_from_event(event)
        sender = await event.get_sender()
        display_name = format_display_name(
            getattr(sender, "first_name", None),
            getattr(sender, "last_name", None),
        )

        ask = self._processor.handle(user_id, raw_query)
        specs = build_inline_results(ask, display_name)
        buttons = build_buttons(ask)

        try:
            results = [
                await event.builder.article(
                    spec.title,
                    text=spec.text,
                    id=spec.id,
                    parse_mode="html",
                    buttons=buttons,
                )
                for spec in specs
            ]
            await event.answer(results, cache_time=0)
        except errors.QueryIdInvalidError:
            # Telegram drops queries that are not answered in time.
            LOGGER.warning("Inline query expired before it was answered, check your server load")
        except Exception:
            LOGGER.exception("Failed to answer inline query from %s", user_id)
            await self._answer_error(event, ask)

    async def _answer_error(self, event, ask: Ask) -> None:
        try:
            article = await event.builder.article(
                "錯誤",
                description="錯誤",
                text=ERROR_TEXT,
                id=f"{ask.id}_e",
            )
            await event.answer([article], cache_time=0)
        except Exception:
            LOGGER.exception("Failed to answer inline query with the error article")
