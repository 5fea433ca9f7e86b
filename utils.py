import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar

from loguru import logger

from errors import DeadlineExceededError

T = TypeVar("T")


def get_logger(name: str):
    return logger.bind(name=name)


@dataclass
class RetryOptions:
    retries: int = 0
    min_interval: float = 0
    before_retry: Optional[Callable[[int], Any]] = None
    on_reject: Optional[Callable[[Exception], Any]] = None


async def retry(
    func: Callable[[], Awaitable[T]],
    retries: int = 0,
    min_interval: float = 0,
    before_retry: Optional[Callable[[int], Any]] = None,
    on_reject: Optional[Callable[[Exception], Any]] = None,
) -> T:
    """
    Runs `func` up to `retries + 1` times and returns the first result.

    A failed attempt that took less than `min_interval` seconds is padded up to it
    before the next attempt. The last error is raised once attempts are exhausted.
    """
    last_error: Optional[Exception] = None

    for attempt in range(retries + 1):
        if attempt > 0 and before_retry is not None:
            before_retry(attempt)

        start_time = time.monotonic()
        try:
            return await func()
        except Exception as e:
            last_error = e
            if on_reject is not None:
                on_reject(e)

        duration = time.monotonic() - start_time
        if attempt < retries and min_interval and duration < min_interval:
            await asyncio.sleep(min_interval - duration)

    raise last_error


async def timeout(
    func: Callable[[], Awaitable[T]],
    seconds: float,
    error: Optional[Exception] = None,
) -> T:
    try:
        return await asyncio.wait_for(func(), seconds)
    except asyncio.TimeoutError:
        raise (error or DeadlineExceededError("Operation result timeout")) from None


class RefreshHandler(Generic[T]):
    """
    Keeps a value fresh in the background.

    The first refresh starts right away, every refresh schedules the next one
    `interval` seconds later (doubled each cycle if `exponential`), no matter whether
    anybody reads the value. `get()` returns the latest resolved value, or waits for
    the first refresh if none resolved yet.

    `stop()` also cancels a first refresh that is still retrying, `get()` then raises
    CancelledError if no value was ever resolved.
    """

    def __init__(
        self,
        func: Callable[[], Awaitable[T]],
        interval: float,
        exponential: bool = False,
        retry_options: Optional[RetryOptions] = None,
        after_refresh: Optional[Callable[[], Any]] = None,
        on_error: Optional[Callable[[Exception], Any]] = None,
    ):
        self.logger = get_logger("REFRESH")
        self._func = func
        self._interval = interval
        self._exponential = exponential
        self._retry_options = retry_options or RetryOptions()
        self._after_refresh = after_refresh
        self._on_error = on_error

        self._value: Optional[T] = None
        self._has_value = False
        self._stopped = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._background_tasks: Set[asyncio.Task] = set()
        self._initial_task = asyncio.ensure_future(self._refresh())
        self._initial_task.add_done_callback(self._on_initial_done)

    async def get(self) -> T:
        if self._has_value:
            return self._value
        return await asyncio.shield(self._initial_task)

    def stop(self):
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._initial_task.done():
            self._initial_task.cancel()
        for task in self._background_tasks:
            task.cancel()

    def _schedule_next(self):
        if self._stopped:
            return
        if self._exponential:
            self._interval *= 2
        self._timer = asyncio.get_running_loop().call_later(self._interval, self._on_timer)

    def _on_timer(self):
        task = asyncio.ensure_future(self._refresh())
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_initial_done(self, task: asyncio.Task):
        # getters re-raise the failure themselves, this only marks it retrieved
        if not task.cancelled() and task.exception() is not None:
            self.logger.debug(f"Initial refresh failed: {task.exception()}")

    def _on_background_done(self, task: asyncio.Task):
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        if self._on_error is not None:
            self._on_error(error)
        else:
            self.logger.warning(f"Background refresh failed: {error}")

    async def _refresh(self) -> T:
        self._schedule_next()
        options = self._retry_options
        result = await retry(
            self._func,
            retries=options.retries,
            min_interval=options.min_interval,
            before_retry=options.before_retry,
            on_reject=options.on_reject,
        )
        self._value = result
        self._has_value = True
        if self._after_refresh is not None:
            self._after_refresh()
        return result


def refresh(
    func: Callable[[], Awaitable[T]],
    interval: float,
    exponential: bool = False,
    retry_options: Optional[RetryOptions] = None,
    after_refresh: Optional[Callable[[], Any]] = None,
    on_error: Optional[Callable[[Exception], Any]] = None,
) -> RefreshHandler[T]:
    """Must be called from a running event loop."""
    return RefreshHandler(func, interval, exponential, retry_options, after_refresh, on_error)
