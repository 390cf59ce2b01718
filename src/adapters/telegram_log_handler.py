"""Telegram Bot API logging adapter.

Forwards log records to a chat (usually a private channel the bot administers)
through the Bot API.
"""

from __future__ import annotations

import json
import logging
import queue
import re
import urllib.error
import urllib.request
from logging.handlers import QueueHandler, QueueListener
from typing import Tuple

_ANSI_ESCAPE = re.compile(r"\x1b\[\d+m")
_MAX_MESSAGE_CHARS = 4096


class TelegramDeliveryError(RuntimeError):
    """Raised when the Bot API rejects a log message."""


class TelegramChannelHandler(logging.Handler):
    """Logging handler that sends formatted records via the Bot API."""

    def __init__(self, bot_token: str, chat_id: str, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._bot_token = bot_token
        self._chat_id = chat_id
        self.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def send(self, text: str) -> None:
        payload = {
            "chat_id": self._chat_id,
            "text": text[:_MAX_MESSAGE_CHARS],
            "disable_notification": True,
        }
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=10):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise TelegramDeliveryError(f"Bot API error {e.code}: {body}") from e
        except urllib.error.URLError as e:
            raise TelegramDeliveryError(f"Bot API unreachable: {e.reason}") from e

    def emit(self, record: logging.LogRecord) -> None:
        text = _ANSI_ESCAPE.sub("", self.format(record))
        # Records about our own delivery failures would loop back here.
        if TelegramDeliveryError.__name__ in text:
            return
        try:
            self.send(text)
        except Exception:
            self.handleError(record)


def start_channel_logging(
    bot_token: str,
    chat_id: str,
    level: int,
    formatter: logging.Formatter,
) -> Tuple[QueueHandler, QueueListener]:
    """Return a queue handler for the root logger and its started listener.

    Records are delivered from the listener's thread so the event loop never
    waits on the Bot API.
    """

    channel_handler = TelegramChannelHandler(bot_token, chat_id, level)
    channel_handler.setFormatter(formatter)
    records: queue.Queue = queue.Queue(-1)
    queue_handler = QueueHandler(records)
    queue_handler.setLevel(level)
    # The queue only merges args and tracebacks into the message; the channel
    # handler applies the real format.
    queue_handler.setFormatter(logging.Formatter("%(message)s"))
    listener = QueueListener(records, channel_handler, respect_handler_level=True)
    listener.start()
    return queue_handler, listener
