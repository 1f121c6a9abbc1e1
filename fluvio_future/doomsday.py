"""A watchdog timer that fails loudly unless it is reset in time."""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from datetime import timedelta
from typing import Tuple, Union

from . import task
from .timer import sleep

__all__ = ["DoomsdayExplosion", "DoomsdayTimer"]

logger = logging.getLogger(__name__)

Duration = Union[float, int, timedelta]


def _seconds(duration: Duration) -> float:
    seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
    if seconds < 0:
        raise ValueError("duration must not be negative")
    return seconds


class DoomsdayExplosion(RuntimeError):
    """Raised when a non-aggressive DoomsdayTimer explodes."""


class DoomsdayTimer:
    """Explodes unless ``reset()`` at least every ``duration`` seconds.

    In aggressive mode an explosion exits the process with status 1;
    otherwise it raises DoomsdayExplosion.
    """

    def __init__(self, duration: Duration, exit_on_explode: bool = False) -> None:
        self.duration = _seconds(duration)
        self.aggressive_mode = bool(exit_on_explode)
        self._deadline = time.monotonic() + self.duration
        self._defused = False

    @classmethod
    def spawn(
        cls, duration: Duration, exit_on_explode: bool = False
    ) -> Tuple["DoomsdayTimer", "asyncio.Future[None]"]:
        """Create a timer and start its watch loop on the running event loop."""
        timer = cls(duration, exit_on_explode)
        handle = task.spawn(timer._main_loop())
        return timer, handle

    @property
    def defused(self) -> bool:
        return self._defused

    def __str__(self) -> str:
        mode = "Exits" if self.aggressive_mode else "Panics"
        return f"DoomsdayTimer(Duration: {self.duration:g}s, {mode})"

    async def reset(self) -> None:
        """Push the deadline a full duration into the future."""
        self._deadline = time.monotonic() + self.duration
        logger.debug("%s has been reset", self)

    async def _main_loop(self) -> None:
        while True:
            if self._defused:
                logger.debug("%s has been defused, terminating main loop", self)
                return
            now = time.monotonic()
            deadline = self._deadline
            if now > deadline:
                logger.error("%s exploded due to timeout", self)
                self._explode_inner()
            else:
                await sleep(deadline - now)

    def explode(self) -> None:
        """Force the timer to explode."""
        logger.error("%s was exploded manually", self)
        self._explode_inner()

    def _explode_inner(self) -> None:
        if self.aggressive_mode:
            logger.error("%s exiting", self)
            sys.exit(1)
        logger.error("%s panicking", self)
        raise DoomsdayExplosion(f"DoomsdayTimer with Duration {self.duration:g}s exploded")

    def defuse(self) -> None:
        """Stop the watch loop for good; cannot be undone."""
        self._defused = True
        logger.info("%s has been defused", self)