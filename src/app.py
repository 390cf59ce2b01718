"""Application entry point for the divination bot."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import QueueListener, RotatingFileHandler
from typing import Optional, Tuple

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.telegram_inline import InlineQueryHandler
from adapters.telegram_log_handler import start_channel_logging
from client import bot_token, build_client
from core.cache import ProbabilityCache
from core.filters import bind_filters, build_filters
from core.hooks import ProbabilityHooks
from core.processor import AskProcessor
from tasks import clear_cache_daily, load_zone, log_task_failure, watch_reload_file

NAME = "DIVINEBOT"
FONT = "tarty-1"
VERSION = "1.0.0"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["BOT_TOKEN", "API_HASH"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> Optional[QueueListener]:
    """Configure root logging; return the channel listener when one is started."""

    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return None

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/divinebot.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    listener = None
    channel_id = config.get("log_to_channel")
    if channel_id:
        channel_formatter = _RedactingFormatter(secrets, fmt="[%(levelname)s] %(message)s")
        queue_handler, listener = start_channel_logging(bot_token(), str(channel_id), level, channel_formatter)
        handlers.append(queue_handler)

    if not handlers:
        return None

    logging.basicConfig(level=level, handlers=handlers)
    return listener


def build_pipeline() -> Tuple[ProbabilityHooks, ProbabilityCache, AskProcessor]:
    """Wire hooks, configured filters, cache, and processor."""

    hooks = ProbabilityHooks()
    filters = build_filters(settings.FILTERS_CONFIG)
    bind_filters(filters, hooks)
    cache = ProbabilityCache(hooks, settings.CACHE)
    processor = AskProcessor(hooks, cache)
    logging.getLogger(__name__).info("%s filters are bound", len(filters))
    return hooks, cache, processor


def _run() -> None:
    _print_banner()
    listener = _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("DivineBot v%s", VERSION)
    logger.info("Starting Telegram bot...")

    zone = load_zone(settings.CACHE.clear_timezone)
    _, cache, processor = build_pipeline()
    inline_handler = InlineQueryHandler(processor)

    client = build_client()
    client.start(bot_token=bot_token())

    # Single handler keeps Telethon integration minimal and defers all
    # divination logic to the core processor.
    @client.on(events.InlineQuery())
    async def handler(event) -> None:
        try:
            await inline_handler.handle(event)
        except Exception:
            logger.exception("Error while processing inline query")

    background = [client.loop.create_task(clear_cache_daily(cache, zone))]
    if settings.RELOAD_FILE:
        background.append(client.loop.create_task(watch_reload_file(settings.RELOAD_FILE)))
    for task in background:
        task.add_done_callback(log_task_failure)

    logger.info("Telegram bot has started.")
    try:
        client.run_until_disconnected()
    finally:
        for task in background:
            task.cancel()
        if listener is not None:
            listener.stop()


def _ask(query: str, user_id: int) -> None:
    """Run one query through the pipeline without Telegram and print it."""

    _configure_logging()
    _, _, processor = build_pipeline()
    ask = processor.handle(user_id, query)
    print(f"subject: {ask.ask}")
    for kind, text in ask.probabilities.as_dict().items():
        print(f"{kind}: {text if text is not None else '-'}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="divinebot")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    ask_parser = subparsers.add_parser("ask", help="Divine one query offline and print the result")
    ask_parser.add_argument("query", nargs="?", default="")
    ask_parser.add_argument("--user", type=int, default=0, help="User id used for the cache key")

    args = parser.parse_args(argv)
    if args.command == "ask":
        _ask(args.query, args.user)
        return
    _run()


if __name__ == "__main__":
    main()
