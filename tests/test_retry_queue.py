import asyncio

import pytest

from quizforge.core.errors import AIError, ErrorCode, create_ai_error
from quizforge.core.retry import RetryOptions
from quizforge.services.retry_queue import RetryQueue

SINGLE_ATTEMPT = RetryOptions(max_attempts=1)


def _silent(notification):
    pass


def test_runs_up_to_concurrency_limit_at_once():
    async def scenario():
        in_flight = 0
        peak = 0

        def make_operation(i):
            async def operation():
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return i
            return operation

        queue = RetryQueue(concurrent_limit=3, notifier=_silent)
        futures = [queue.add(make_operation(i)) for i in range(10)]
        results = await asyncio.gather(*futures)
        return results, peak, queue

    results, peak, queue = asyncio.run(scenario())

    assert results == list(range(10))
    assert peak == 3
    assert queue.size == 0
    assert not queue.is_processing


def test_failed_item_is_requeued_until_it_succeeds():
    async def scenario():
        calls = []

        async def flaky():
            calls.append(len(calls))
            if len(calls) < 3:
                raise create_ai_error(ErrorCode.NETWORK_ERROR)
            return "saved"

        queue = RetryQueue(concurrent_limit=2, retry_options=SINGLE_ATTEMPT, notifier=_silent)
        result = await queue.add(flaky, max_retries=3)
        return result, calls

    result, calls = asyncio.run(scenario())

    assert result == "saved"
    assert len(calls) == 3


def test_item_fails_after_max_retries():
    async def scenario():
        calls = []

        async def broken():
            calls.append(1)
            raise create_ai_error(ErrorCode.RATE_LIMIT)

        queue = RetryQueue(concurrent_limit=1, retry_options=SINGLE_ATTEMPT, notifier=_silent)
        future = queue.add(broken, max_retries=1)
        with pytest.raises(AIError) as info:
            await future
        return info.value, calls

    error, calls = asyncio.run(scenario())

    assert len(calls) == 2
    assert error.code == ErrorCode.PROCESSING_ERROR


def test_requeued_item_goes_to_the_back():
    async def scenario():
        order = []
        failed_once = False

        async def first():
            nonlocal failed_once
            order.append("first")
            if not failed_once:
                failed_once = True
                raise create_ai_error(ErrorCode.TIMEOUT)
            return "first"

        def tagged(name):
            async def operation():
                order.append(name)
                return name
            return operation

        queue = RetryQueue(concurrent_limit=1, retry_options=SINGLE_ATTEMPT, notifier=_silent)
        futures = [queue.add(first), queue.add(tagged("second")), queue.add(tagged("third"))]
        await asyncio.gather(*futures)
        return order

    assert asyncio.run(scenario()) == ["first", "second", "third", "first"]


def test_non_retryable_failure_is_still_requeued_by_the_queue():
    async def scenario():
        calls = []

        async def invalid():
            calls.append(1)
            raise create_ai_error(ErrorCode.VALIDATION_FAILED)

        queue = RetryQueue(concurrent_limit=1, notifier=_silent)
        with pytest.raises(AIError) as info:
            await queue.add(invalid, max_retries=2)
        return info.value, calls

    error, calls = asyncio.run(scenario())

    assert error.code == ErrorCode.VALIDATION_FAILED
    assert len(calls) == 3


def test_clear_drops_pending_items():
    async def scenario():
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()
            return "done"

        queue = RetryQueue(concurrent_limit=1, notifier=_silent)
        running = queue.add(blocked)
        queue.add(blocked)
        await asyncio.sleep(0)
        pending_before = queue.size
        queue.clear()
        gate.set()
        return await running, pending_before, queue.size

    result, pending_before, pending_after = asyncio.run(scenario())

    assert result == "done"
    assert pending_before == 1
    assert pending_after == 0


def test_rejects_zero_concurrency():
    with pytest.raises(ValueError):
        RetryQueue(concurrent_limit=0)
