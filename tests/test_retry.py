import asyncio
import errno
from itertools import islice

import pytest

from fluvio_future.retry import (
    ExponentialBackoff,
    FibonacciBackoff,
    FixedDelay,
    RetryTimeoutError,
    retry,
    retry_if,
    timeout,
)
from fluvio_future.timer import sleep

U64_MAX = 2**64 - 1


def test_fibonacci_series_starting_at_10():
    it = FibonacciBackoff.from_millis(10)
    assert [next(it) for _ in range(6)] == [0.01, 0.01, 0.02, 0.03, 0.05, 0.08]


def test_fibonacci_saturates_at_maximum_value():
    it = FibonacciBackoff.from_millis(U64_MAX)
    assert next(it) == U64_MAX / 1000
    assert next(it) == U64_MAX / 1000


def test_fibonacci_stops_increasing_at_max_delay():
    it = FibonacciBackoff.from_millis(10).max_delay(0.05)
    assert [next(it) for _ in range(6)] == [0.01, 0.01, 0.02, 0.03, 0.05, 0.05]


def test_fibonacci_returns_max_when_max_less_than_base():
    it = FibonacciBackoff.from_secs(20).max_delay(10)
    assert next(it) == 10.0
    assert next(it) == 10.0


def test_exponential_some_exponential_base_10():
    it = ExponentialBackoff.from_millis(10)
    assert [next(it) for _ in range(3)] == [0.01, 0.1, 1.0]


def test_exponential_some_exponential_base_2():
    it = ExponentialBackoff.from_millis(2)
    assert [next(it) for _ in range(3)] == [0.002, 0.004, 0.008]


def test_exponential_saturates_at_maximum_value():
    it = ExponentialBackoff.from_millis(U64_MAX - 1)
    assert next(it) == (U64_MAX - 1) / 1000
    assert next(it) == U64_MAX / 1000
    assert next(it) == U64_MAX / 1000


def test_exponential_stops_increasing_at_max_delay():
    it = ExponentialBackoff.from_millis(2).max_delay(0.004)
    assert [next(it) for _ in range(3)] == [0.002, 0.004, 0.004]


def test_exponential_max_when_max_less_than_base():
    it = ExponentialBackoff.from_millis(20).max_delay(0.01)
    assert next(it) == 0.01
    assert next(it) == 0.01


def test_fixed_delay_repeats_and_compares_equal():
    assert list(islice(FixedDelay.from_millis(100), 3)) == [0.1, 0.1, 0.1]
    assert FixedDelay.from_millis(100) == FixedDelay(0.1)
    assert FixedDelay.from_secs(2).delay == 2.0


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        FixedDelay(-1)


def _failing(counter, exc_factory=lambda i: FileNotFoundError("missing")):
    async def operation():
        counter.append(len(counter))
        raise exc_factory(len(counter))

    return operation


@pytest.mark.asyncio
async def test_fixed_retries_no_delay():
    calls = []
    with pytest.raises(FileNotFoundError):
        await retry(islice(FixedDelay(), 2), _failing(calls))
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_fixed_retries_timeout():
    calls = []
    with pytest.raises(RetryTimeoutError):
        await timeout(retry(islice(FixedDelay.from_millis(100), 10), _failing(calls)), 0.3)
    assert len(calls) < 10


@pytest.mark.asyncio
async def test_fixed_retries_not_retryable():
    calls = []
    with pytest.raises(FileNotFoundError):
        await retry_if(islice(FixedDelay.from_millis(100), 10), _failing(calls), lambda _e: False)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_conditional_retry():
    calls = []

    def make_error(attempt):
        if attempt < 2:
            return FileNotFoundError("missing")
        return OSError(errno.EADDRNOTAVAIL, "address not available")

    with pytest.raises(OSError) as info:
        await retry_if(
            islice(FixedDelay(), 10),
            _failing(calls, make_error),
            lambda err: isinstance(err, FileNotFoundError),
        )
    assert info.value.errno == errno.EADDRNOTAVAIL
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retry_returns_value_after_failures():
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("not yet")
        return "ok"

    assert await retry(islice(FixedDelay(), 5), operation) == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_timeout_exceeded():
    with pytest.raises(RetryTimeoutError):
        await timeout(sleep(10), 0.05)


@pytest.mark.asyncio
async def test_timeout_returns_result():
    async def quick():
        await asyncio.sleep(0)
        return 7

    assert await timeout(quick(), 1.0) == 7