"""Staged-backoff retry policy shared by the LLM dispatcher and the inventory fetch."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

logger = structlog.get_logger()

T = TypeVar("T")


def _always(_: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an async call after each delay in ``delays``, then give up.

    ``is_retryable`` classifies failures; anything it rejects propagates on the
    first attempt. After ``len(delays)`` retries the last error is re-raised.
    """

    delays: Sequence[float]
    is_retryable: Callable[[BaseException], bool] = _always
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    name: str = "operation"

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        retrying = AsyncRetrying(
            retry=retry_if_exception(self.is_retryable),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(fn, *args, **kwargs)

    def _wait(self, retry_state: RetryCallState) -> float:
        if not self.delays:
            return 0.0
        index = min(retry_state.attempt_number - 1, len(self.delays) - 1)
        return float(self.delays[index])

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "retry_scheduled",
            operation=self.name,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
        )
