from __future__ import annotations

import asyncio
import time

import pytest

from errors import DeadlineExceededError
from utils import RetryOptions, refresh, retry, timeout


async def test_retry_pads_failed_attempts_and_reports_rejections():
    calls = 0
    rejected = []

    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ConnectionError(f"attempt {calls}")
        return "ok"

    start = time.monotonic()
    result = await retry(flaky, retries=3, min_interval=0.1, on_reject=rejected.append)
    elapsed = time.monotonic() - start

    assert result == "ok"
    assert calls == 3
    assert [str(e) for e in rejected] == ["attempt 1", "attempt 2"]
    assert elapsed >= 0.195


async def test_retry_raises_last_error_without_padding_after_last_attempt():
    calls = 0
    attempts = []

    async def failing():
        nonlocal calls
        calls += 1
        raise ValueError(f"attempt {calls}")

    start = time.monotonic()
    with pytest.raises(ValueError, match="attempt 2"):
        await retry(failing, retries=1, min_interval=0.05, before_retry=attempts.append)
    elapsed = time.monotonic() - start

    assert calls == 2
    assert attempts == [1]
    assert elapsed < 0.1 + 0.05


async def test_timeout_returns_result_or_raises_given_error():
    async def fast():
        return 1

    async def slow():
        await asyncio.sleep(1)

    assert await timeout(fast, 0.5) == 1

    with pytest.raises(DeadlineExceededError):
        await timeout(slow, 0.01)
    with pytest.raises(TimeoutError):
        await timeout(slow, 0.01)

    custom = RuntimeError("send timeout")
    with pytest.raises(RuntimeError, match="send timeout"):
        await timeout(slow, 0.01, custom)


async def test_refresh_keeps_value_fresh_until_stopped():
    calls = 0

    async def counter():
        nonlocal calls
        calls += 1
        return calls

    handler = refresh(counter, 0.05)
    assert await handler.get() == 1

    await asyncio.sleep(0.13)
    assert await handler.get() >= 2

    handler.stop()
    stopped_at = calls
    await asyncio.sleep(0.12)
    assert calls == stopped_at


async def test_stop_cancels_first_refresh_still_retrying():
    calls = 0

    async def always_failing():
        nonlocal calls
        calls += 1
        raise ConnectionError("rpc down")

    handler = refresh(always_failing, 10, retry_options=RetryOptions(retries=3, min_interval=0.1))
    await asyncio.sleep(0.01)
    handler.stop()
    stopped_at = calls

    await asyncio.sleep(0.4)
    assert stopped_at == 1
    assert calls == stopped_at
    with pytest.raises(asyncio.CancelledError):
        await handler.get()


async def test_refresh_get_raises_initial_failure_and_retries_it():
    calls = 0

    async def broken():
        nonlocal calls
        calls += 1
        raise ConnectionError("rpc down")

    handler = refresh(broken, 10, retry_options=RetryOptions(retries=2))
    with pytest.raises(ConnectionError):
        await handler.get()
    assert calls == 3
    handler.stop()


async def test_refresh_background_errors_go_to_on_error():
    calls = 0
    errors = []

    async def first_only():
        nonlocal calls
        calls += 1
        if calls > 1:
            raise ConnectionError("later failure")
        return "first"

    handler = refresh(first_only, 0.03, on_error=errors.append)
    assert await handler.get() == "first"
    await asyncio.sleep(0.1)
    handler.stop()

    assert errors
    assert await handler.get() == "first"
