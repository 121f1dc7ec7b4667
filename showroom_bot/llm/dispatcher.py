"""Single-flight, rate-limited access to the generative backend.

Two pieces:

* ``SerialQueue`` — a strict FIFO chain of async jobs. A job starts only after
  the previous one settled; a failing job never stops the chain.
* ``ReplyDispatcher`` — wraps the backend so that at most one call is in
  flight process-wide and consecutive generations start at least
  ``min_interval`` apart. Rate-limit/overload errors are retried on a staged
  schedule; the backoff delays alone space the retries.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import structlog

from showroom_bot.config import settings
from showroom_bot.errors import ReplyGenerationError
from showroom_bot.llm.backend import GenerativeBackend, is_retryable_error
from showroom_bot.retry import RetryPolicy

logger = structlog.get_logger()

T = TypeVar("T")


class SerialQueue:
    """FIFO job chain processed by a single worker task."""

    def __init__(self, name: str = "messages"):
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    def enqueue(self, job: Callable[[], Awaitable[T]]) -> asyncio.Future:
        """Append a job; the returned future settles with the job's outcome."""
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
        logger.debug("job_enqueued", queue=self.name, pending=self._queue.qsize())
        return future

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every job enqueued so far has settled."""
        await self._queue.join()

    async def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def _run(self) -> None:
        while True:
            job, future = await self._queue.get()
            try:
                result = await job()
            except Exception as e:
                logger.error(
                    "queued_job_failed",
                    queue=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()


class RateLimiter:
    """Enforces a minimum gap between consecutive calls."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self.last_call: Optional[float] = None

    async def wait(self) -> float:
        """Block until the interval has elapsed, then stamp the call time.

        Returns:
            Seconds spent waiting.
        """
        waited = 0.0
        if self.last_call is not None:
            elapsed = self.clock() - self.last_call
            if elapsed < self.min_interval:
                waited = self.min_interval - elapsed
                logger.info("rate_limit_wait", wait_seconds=round(waited, 2))
                await self.sleep(waited)
        self.last_call = self.clock()
        return waited

    def mark(self) -> None:
        """Stamp a call without waiting (retries follow their own backoff)."""
        self.last_call = self.clock()


class ReplyDispatcher:
    """The only way the app talks to the generative backend."""

    def __init__(
        self,
        backend: GenerativeBackend,
        min_interval: float = settings.llm_min_interval_seconds,
        retry_delays: Sequence[float] = tuple(settings.llm_retry_schedule),
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.backend = backend
        self.limiter = RateLimiter(min_interval, clock=clock, sleep=sleep)
        self.retry_policy = RetryPolicy(
            delays=tuple(retry_delays),
            is_retryable=is_retryable_error,
            sleep=sleep,
            name="llm_generate",
        )
        self._lock = asyncio.Lock()
        self.calls = 0

    async def generate(
        self,
        system_instruction: str,
        history: list[dict],
        live_message: str,
    ) -> str:
        """Generate a reply, serialized and spaced against every other call.

        Raises:
            ReplyGenerationError: retries exhausted or a non-retryable failure
        """
        async with self._lock:
            await self.limiter.wait()
            try:
                return await self.retry_policy.call(
                    self._attempt, system_instruction, history, live_message
                )
            except Exception as e:
                logger.error(
                    "llm_generation_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    retryable=is_retryable_error(e),
                )
                raise ReplyGenerationError(str(e)) from e

    async def _attempt(self, system_instruction: str, history: list[dict], live_message: str) -> str:
        self.limiter.mark()
        self.calls += 1
        return await self.backend.generate(system_instruction, history, live_message)
