"""Async timers."""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import Union

__all__ = ["sleep", "after"]

Duration = Union[float, int, timedelta]


def _seconds(duration: Duration) -> float:
    seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
    if seconds < 0:
        raise ValueError("duration must not be negative")
    return seconds


async def sleep(duration: Duration) -> None:
    """Suspend the current task for ``duration`` (seconds or timedelta)."""
    await asyncio.sleep(_seconds(duration))


async def after(duration: Duration) -> float:
    """Wait until ``duration`` has elapsed and return the monotonic time it fired at."""
    await asyncio.sleep(_seconds(duration))
    return time.monotonic()