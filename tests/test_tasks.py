from __future__ import annotations

import asyncio
import logging
import os

import pytest

from tasks import clear_cache_daily, load_zone, log_task_failure, watch_reload_file


class FlakyCache:
    def __init__(self) -> None:
        self.calls = 0

    def clear(self) -> int:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("store unavailable")
        if self.calls == 3:
            raise asyncio.CancelledError()
        return 2


def test_daily_clear_survives_a_failed_clear(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    cache = FlakyCache()

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(clear_cache_daily(cache, None, delay=lambda now: 0))

    assert cache.calls == 3
    assert "Daily cache clear failed" in caplog.text
    assert "Daily cache clear dropped 2 entries" in caplog.text


def test_daily_clear_passes_zone_aware_time_to_delay() -> None:
    seen = []

    class StopCache:
        def clear(self) -> int:
            raise asyncio.CancelledError()

    def delay(now) -> float:
        seen.append(now)
        return 0

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(clear_cache_daily(StopCache(), load_zone("Asia/Taipei"), delay=delay))

    assert seen[0].utcoffset() is not None
    assert str(seen[0].tzinfo) == "Asia/Taipei"


def test_load_zone_defaults_to_local() -> None:
    assert load_zone(None) is None
    assert load_zone("") is None


def test_load_zone_rejects_unknown_names() -> None:
    with pytest.raises(RuntimeError):
        load_zone("Mars/Olympus_Mons")


def test_reload_watcher_fires_on_change(tmp_path) -> None:
    path = tmp_path / "reload"
    path.write_text("v1")
    changes = []

    async def scenario() -> None:
        task = asyncio.ensure_future(watch_reload_file(str(path), poll_seconds=0, on_change=changes.append))
        await asyncio.sleep(0)
        stat = os.stat(path)
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())

    assert changes == [str(path)]


def test_reload_watcher_keeps_running_after_callback_error(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "reload"
    path.write_text("v1")
    calls = []

    def on_change(changed: str) -> None:
        calls.append(changed)
        if len(calls) == 1:
            raise OSError("supervisor unreachable")

    async def scenario() -> None:
        task = asyncio.ensure_future(watch_reload_file(str(path), poll_seconds=0, on_change=on_change))
        await asyncio.sleep(0)
        stat = os.stat(path)
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        await asyncio.wait_for(task, 5)

    asyncio.run(scenario())

    assert len(calls) == 2
    assert "Reload watcher failed" in caplog.text


def test_log_task_failure_reports_crashed_task(caplog: pytest.LogCaptureFixture) -> None:
    async def crash() -> None:
        raise ValueError("boom")

    async def scenario() -> None:
        task = asyncio.ensure_future(crash())
        task.add_done_callback(log_task_failure)
        with pytest.raises(ValueError):
            await task
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert "Background task" in caplog.text
    assert "boom" in caplog.text


def test_log_task_failure_ignores_cancelled_task(caplog: pytest.LogCaptureFixture) -> None:
    async def scenario() -> None:
        task = asyncio.ensure_future(asyncio.sleep(10))
        task.add_done_callback(log_task_failure)
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert "Background task" not in caplog.text
