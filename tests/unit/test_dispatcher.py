"""Tests for the serial queue, rate limiter, retry policy and reply dispatcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from showroom_bot.errors import BackendBusyError, ReplyGenerationError
from showroom_bot.llm.backend import AnthropicBackend, is_retryable_error
from showroom_bot.llm.dispatcher import RateLimiter, ReplyDispatcher, SerialQueue
from showroom_bot.retry import RetryPolicy
from tests.fakes import FakeBackend


def api_error(status: int) -> anthropic.APIStatusError:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status, request=request)
    if status == 429:
        return anthropic.RateLimitError("rate limited", response=response, body=None)
    return anthropic.APIStatusError(f"status {status}", response=response, body=None)


class TestSerialQueue:

    @pytest.mark.asyncio
    async def test_jobs_run_in_order_one_at_a_time(self):
        queue = SerialQueue()
        order = []
        running = {"now": 0, "max": 0}

        def make_job(n):
            async def job():
                running["now"] += 1
                running["max"] = max(running["max"], running["now"])
                await asyncio.sleep(0.001 * (5 - n))
                order.append(n)
                running["now"] -= 1
                return n
            return job

        futures = [queue.enqueue(make_job(n)) for n in range(5)]
        results = await asyncio.gather(*futures)

        assert order == [0, 1, 2, 3, 4]
        assert results == [0, 1, 2, 3, 4]
        assert running["max"] == 1
        await queue.close()

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stop_chain(self):
        queue = SerialQueue()

        async def boom():
            raise RuntimeError("boom")

        async def ok():
            return "ok"

        failed = queue.enqueue(boom)
        succeeded = queue.enqueue(ok)

        with pytest.raises(RuntimeError):
            await failed
        assert await succeeded == "ok"
        await queue.close()


class TestRateLimiter:

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, clock):
        limiter = RateLimiter(7.0, clock=clock, sleep=clock.sleep)
        assert await limiter.wait() == 0.0

    @pytest.mark.asyncio
    async def test_back_to_back_calls_are_spaced(self, clock):
        limiter = RateLimiter(7.0, clock=clock, sleep=clock.sleep)
        await limiter.wait()
        clock.advance(3)

        assert await limiter.wait() == pytest.approx(4.0)
        assert limiter.last_call == clock()

    @pytest.mark.asyncio
    async def test_no_wait_after_interval(self, clock):
        limiter = RateLimiter(7.0, clock=clock, sleep=clock.sleep)
        await limiter.wait()
        clock.advance(10)
        assert await limiter.wait() == 0.0


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_staged_delays(self, clock):
        fn = AsyncMock(side_effect=[ValueError("1"), ValueError("2"), "done"])
        policy = RetryPolicy(delays=(2, 5, 10), sleep=clock.sleep)

        assert await policy.call(fn) == "done"
        assert clock.sleeps == [2, 5]

    @pytest.mark.asyncio
    async def test_reraises_after_schedule(self, clock):
        fn = AsyncMock(side_effect=ValueError("always"))
        policy = RetryPolicy(delays=(2, 5), sleep=clock.sleep)

        with pytest.raises(ValueError):
            await policy.call(fn)
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_fails_fast(self, clock):
        fn = AsyncMock(side_effect=KeyError("nope"))
        policy = RetryPolicy(
            delays=(2, 5), is_retryable=lambda e: isinstance(e, ValueError), sleep=clock.sleep
        )

        with pytest.raises(KeyError):
            await policy.call(fn)
        assert fn.await_count == 1
        assert clock.sleeps == []


class TestErrorClassification:

    def test_busy_errors_are_retryable(self):
        assert is_retryable_error(BackendBusyError("busy"))
        assert is_retryable_error(api_error(429))
        assert is_retryable_error(api_error(503))
        assert is_retryable_error(api_error(529))

    def test_other_errors_are_fatal(self):
        assert not is_retryable_error(api_error(400))
        assert not is_retryable_error(api_error(401))
        assert not is_retryable_error(ValueError("bad"))


class TestReplyDispatcher:

    @pytest.mark.asyncio
    async def test_retry_elapsed_equals_backoff_sum(self, clock):
        backend = FakeBackend(
            BackendBusyError("429"), BackendBusyError("429"), BackendBusyError("429"), "Hello!",
            clock=clock,
        )
        dispatcher = ReplyDispatcher(
            backend, min_interval=7.0, retry_delays=(5, 10, 20, 30), clock=clock, sleep=clock.sleep
        )
        started = clock()

        assert await dispatcher.generate("system", [], "hi") == "Hello!"
        assert clock() - started == pytest.approx(35.0)
        assert clock.sleeps == [5, 10, 20]
        assert len(backend.calls) == 4

    @pytest.mark.asyncio
    async def test_next_generation_waits_after_retried_one(self, clock):
        backend = FakeBackend(BackendBusyError("529"), "first", "second", clock=clock)
        dispatcher = ReplyDispatcher(
            backend, min_interval=7.0, retry_delays=(5, 10, 20, 30), clock=clock, sleep=clock.sleep
        )

        await dispatcher.generate("system", [], "one")
        await dispatcher.generate("system", [], "two")

        times = [call["at"] for call in backend.calls]
        assert times[1] - times[0] == pytest.approx(5.0)
        assert times[2] - times[1] == pytest.approx(7.0)

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, clock):
        backend = FakeBackend(*[api_error(429)] * 4, clock=clock)
        dispatcher = ReplyDispatcher(
            backend, min_interval=2.0, retry_delays=(5, 10, 20), clock=clock, sleep=clock.sleep
        )

        with pytest.raises(ReplyGenerationError):
            await dispatcher.generate("system", [], "hi")
        assert len(backend.calls) == 4

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried(self, dispatcher, backend):
        backend.script = [api_error(400)]

        with pytest.raises(ReplyGenerationError):
            await dispatcher.generate("system", [], "hi")
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_consecutive_calls_respect_min_interval(self, dispatcher, backend):
        await dispatcher.generate("system", [], "one")
        await dispatcher.generate("system", [], "two")
        await dispatcher.generate("system", [], "three")

        times = [call["at"] for call in backend.calls]
        gaps = [b - a for a, b in zip(times, times[1:])]
        assert all(gap >= 7.0 for gap in gaps)
        assert dispatcher.calls == 3

    @pytest.mark.asyncio
    async def test_concurrent_callers_never_overlap(self, clock):
        in_flight = {"now": 0, "max": 0}

        class SlowBackend:
            async def generate(self, system_instruction, history, live_message):
                in_flight["now"] += 1
                in_flight["max"] = max(in_flight["max"], in_flight["now"])
                await asyncio.sleep(0.001)
                in_flight["now"] -= 1
                return live_message

        dispatcher = ReplyDispatcher(
            SlowBackend(), min_interval=7.0, retry_delays=(), clock=clock, sleep=clock.sleep
        )
        results = await asyncio.gather(*(dispatcher.generate("s", [], str(n)) for n in range(4)))

        assert sorted(results) == ["0", "1", "2", "3"]
        assert in_flight["max"] == 1


class TestAnthropicBackend:

    @pytest.mark.asyncio
    async def test_sends_history_plus_live_message(self):
        response = MagicMock()
        response.content = [MagicMock(type="text", text=" Welcome to 9th Gear! ")]
        response.usage = MagicMock(input_tokens=120, output_tokens=12)
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=response)

        backend = AnthropicBackend(client=client, model="claude-test", max_tokens=100, temperature=0.5)
        history = [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}]
        reply = await backend.generate("be nice", history, "GLA price?")

        assert reply == "Welcome to 9th Gear!"
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "be nice"
        assert kwargs["model"] == "claude-test"
        assert kwargs["messages"][-1] == {"role": "user", "content": "GLA price?"}
        assert kwargs["messages"][:2] == history

    @pytest.mark.asyncio
    async def test_empty_system_instruction_is_omitted(self):
        response = MagicMock()
        response.content = [MagicMock(type="text", text="ok")]
        response.usage = MagicMock(input_tokens=1, output_tokens=1)
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=response)

        await AnthropicBackend(client=client).generate("", [], "hi")
        assert "system" not in client.messages.create.await_args.kwargs
