"""Long-running background tasks started next to the bot client.

Each loop survives errors in a single iteration: the failure is logged and
the loop carries on. Only cancellation ends them.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.cache import seconds_until_next_clear
from core.ports import AskCachePort

LOGGER = logging.getLogger(__name__)

RELOAD_POLL_SECONDS = 2.0


def load_zone(name: Optional[str]) -> Optional[tzinfo]:
    """Return the zone for ``name``, or None for the local zone.

    Raises RuntimeError for names the zone database does not know, so a
    misconfigured bot fails at start rather than inside a background task.
    """

    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Unknown cache clear timezone: {name!r}") from e


async def clear_cache_daily(
    cache: AskCachePort,
    zone: Optional[tzinfo],
    delay: Callable[[datetime], float] = seconds_until_next_clear,
) -> None:
    """Clear the whole cache at every midnight, independent of entry TTLs."""

    while True:
        try:
            now = datetime.now(zone) if zone else datetime.now().astimezone()
            await asyncio.sleep(delay(now))
            dropped = cache.clear()
            LOGGER.info("Daily cache clear dropped %s entries", dropped)
        except Exception:
            LOGGER.exception("Daily cache clear failed")


def _exit_for_reload(path: str) -> None:
    logging.shutdown()
    os._exit(1)


def _stamp(path: str) -> Optional[float]:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


async def watch_reload_file(
    path: str,
    poll_seconds: float = RELOAD_POLL_SECONDS,
    on_change: Callable[[str], None] = _exit_for_reload,
) -> None:
    """Call ``on_change`` once ``path`` changes; by default exit with status 1.

    A supervisor is expected to restart the process after the exit.
    """

    LOGGER.info('Register reload file "%s"', path)
    initial = _stamp(path)
    while True:
        await asyncio.sleep(poll_seconds)
        try:
            if _stamp(path) == initial:
                continue
            LOGGER.warning('Reload file "%s" changed, exit.', path)
            on_change(path)
            return
        except Exception:
            LOGGER.exception('Reload watcher failed for "%s"', path)


def log_task_failure(task: asyncio.Task) -> None:
    """Done callback: log a background task that ended with an error."""

    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        LOGGER.error("Background task %s stopped", task.get_name(), exc_info=error)
