"""Retry strategies and helpers for retrying and time-limiting awaitables."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import operator
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction
from numbers import Real
from typing import Awaitable, Callable, Iterable, Optional, TypeVar, Union

from .timer import sleep

__all__ = [
    "RetryTimeoutError",
    "FixedDelay",
    "FibonacciBackoff",
    "ExponentialBackoff",
    "timeout",
    "retry",
    "retry_if",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")
DurationLike = Union[Real, timedelta]

_NANOS_PER_SEC = 1_000_000_000
_NANOS_PER_MILLI = 1_000_000
_U64_MAX = 2**64 - 1
_MAX_DURATION_NS = _U64_MAX * _NANOS_PER_SEC + (_NANOS_PER_SEC - 1)


def _to_nanos(value: DurationLike) -> int:
    """Convert seconds (any real number) or a timedelta to whole nanoseconds."""
    if isinstance(value, timedelta):
        nanos = (value // timedelta(microseconds=1)) * 1000
    else:
        nanos = round(value * _NANOS_PER_SEC)
    if nanos < 0:
        raise ValueError("duration must not be negative")
    return int(nanos)


def _to_seconds(nanos: int) -> float:
    return nanos / _NANOS_PER_SEC


class RetryTimeoutError(TimeoutError):
    """Raised when an awaitable does not finish within its time limit."""

    def __init__(self, message: str = "operation timed out") -> None:
        super().__init__(message)


@dataclass(init=False)
class FixedDelay:
    """Infinite iterator yielding the same delay, in seconds, for every retry."""

    _delay_ns: int

    def __init__(self, delay: DurationLike = 0) -> None:
        self._delay_ns = _to_nanos(delay)

    @classmethod
    def from_millis(cls, millis: int) -> "FixedDelay":
        return cls(Fraction(operator.index(millis), 1000))

    @classmethod
    def from_secs(cls, secs: int) -> "FixedDelay":
        return cls(operator.index(secs))

    @property
    def delay(self) -> float:
        return _to_seconds(self._delay_ns)

    def __iter__(self) -> "FixedDelay":
        return self

    def __next__(self) -> float:
        return _to_seconds(self._delay_ns)


@dataclass(init=False)
class FibonacciBackoff:
    """Infinite iterator yielding delays, in seconds, that follow the Fibonacci series."""

    _current_ns: int
    _next_ns: int
    _max_delay_ns: Optional[int]

    def __init__(self, initial_delay: DurationLike = 0) -> None:
        nanos = _to_nanos(initial_delay)
        self._current_ns = nanos
        self._next_ns = nanos
        self._max_delay_ns = None

    @classmethod
    def from_millis(cls, millis: int) -> "FibonacciBackoff":
        return cls(Fraction(operator.index(millis), 1000))

    @classmethod
    def from_secs(cls, secs: int) -> "FibonacciBackoff":
        return cls(operator.index(secs))

    def max_delay(self, max_delay: DurationLike) -> "FibonacciBackoff":
        """Cap every yielded delay at ``max_delay``; returns self for chaining."""
        self._max_delay_ns = _to_nanos(max_delay)
        return self

    def __iter__(self) -> "FibonacciBackoff":
        return self

    def __next__(self) -> float:
        duration = self._current_ns
        if self._max_delay_ns is not None and duration > self._max_delay_ns:
            return _to_seconds(self._max_delay_ns)
        following = self._current_ns + self._next_ns
        self._current_ns = self._next_ns
        self._next_ns = min(following, _MAX_DURATION_NS)
        return _to_seconds(duration)


@dataclass(init=False)
class ExponentialBackoff:
    """Infinite iterator yielding delays, in seconds, of base, base^2, base^3... milliseconds."""

    _base_millis: int
    _current_millis: int
    _max_delay_ns: Optional[int]

    def __init__(self, base_millis: int = 0) -> None:
        base = operator.index(base_millis)
        if base < 0:
            raise ValueError("duration must not be negative")
        self._base_millis = base
        self._current_millis = base
        self._max_delay_ns = None

    @classmethod
    def from_millis(cls, millis: int) -> "ExponentialBackoff":
        return cls(millis)

    def max_delay(self, max_delay: DurationLike) -> "ExponentialBackoff":
        """Cap every yielded delay at ``max_delay``; returns self for chaining."""
        self._max_delay_ns = _to_nanos(max_delay)
        return self

    def __iter__(self) -> "ExponentialBackoff":
        return self

    def __next__(self) -> float:
        duration = self._current_millis * _NANOS_PER_MILLI
        if self._max_delay_ns is not None and duration > self._max_delay_ns:
            return _to_seconds(self._max_delay_ns)
        self._current_millis = min(self._current_millis * self._base_millis, _U64_MAX)
        return _to_seconds(duration)


async def timeout(awaitable: Awaitable[T], duration: DurationLike) -> T:
    """Await ``awaitable``, raising RetryTimeoutError if it takes longer than ``duration``."""
    seconds = _to_seconds(_to_nanos(duration))
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=seconds)
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    if not done:
        raise RetryTimeoutError()
    return task.result()


def retry(
    retries: Iterable[DurationLike], factory: Callable[[], Awaitable[T]]
) -> Awaitable[T]:
    """Retry every failure; see :func:`retry_if`."""
    return retry_if(retries, factory, lambda _err: True)


async def retry_if(
    retries: Iterable[DurationLike],
    factory: Callable[[], Awaitable[T]],
    condition: Callable[[Exception], bool],
) -> T:
    """Call ``factory`` and await its result, retrying after each delay from ``retries``.

    An exception for which ``condition`` is false is raised at once. When the
    delays run out, the last exception is raised.
    """

    async def attempt() -> tuple[bool, object]:
        try:
            return True, await factory()
        except Exception as err:
            if not condition(err):
                raise
            return False, err

    ok, outcome = await attempt()
    if ok:
        return outcome  # type: ignore[return-value]
    for delay in retries:
        await sleep(_to_seconds(_to_nanos(delay)))
        logger.warning("retrying after error: %r", outcome)
        ok, outcome = await attempt()
        if ok:
            return outcome  # type: ignore[return-value]
    raise outcome  # type: ignore[misc]