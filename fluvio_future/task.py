"""Running and spawning asynchronous work."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

__all__ = ["run", "run_block_on", "spawn", "spawn_blocking"]

T = TypeVar("T")

# Keep strong references so spawned tasks are not garbage collected mid-flight.
_background: set[asyncio.Future] = set()


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable


def run_block_on(coro: Awaitable[T]) -> T:
    """Run an awaitable on a fresh event loop and return its result."""
    return asyncio.run(_await(coro))


def run(coro: Awaitable[Any]) -> None:
    """Run an awaitable to completion on a fresh event loop, discarding its result."""
    run_block_on(coro)


def spawn(coro: Awaitable[T]) -> "asyncio.Future[T]":
    """Schedule an awaitable on the running loop and return its task."""
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(coro, loop=loop)
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


def spawn_blocking(func: Callable[..., T], *args: Any) -> "asyncio.Future[T]":
    """Run a blocking callable in a worker thread and return a future for its result."""
    loop = asyncio.get_running_loop()
    return loop.run_in_executor(None, func, *args)