"""Process-wide logging set-up writing to standard error."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Union

__all__ = ["LOG_ENV", "init_logger", "init_tracer"]

LOG_ENV = "FLUVIO_LOG"
"""Environment variable whose level name, when set, overrides the requested level."""

_MARK = "_fluvio_future_subscriber"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

Level = Union[int, str]


def _resolve_level(level: Optional[Level]) -> int:
    if level is None:
        return logging.DEBUG
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level!r}")
    return resolved


def init_tracer(level: Optional[Level] = None) -> bool:
    """Install a stderr handler on the root logger.

    The level defaults to DEBUG; the ``FLUVIO_LOG`` environment variable, when
    set, takes precedence. Returns False without changing anything if a handler
    was already installed by an earlier call.
    """
    root = logging.getLogger()
    if any(getattr(handler, _MARK, False) for handler in root.handlers):
        return False
    env_level = os.environ.get(LOG_ENV)
    effective = _resolve_level(env_level) if env_level else _resolve_level(level)
    handler = logging.StreamHandler(sys.stderr)
    setattr(handler, _MARK, True)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(effective)
    return True


def init_logger() -> bool:
    """Install the stderr handler at the default level."""
    return init_tracer(None)