"""Zero-copy transfer of file slices to a descriptor using sendfile."""

from __future__ import annotations

import logging
import operator
import os
import time
from typing import Any, Union

from . import task
from .file_slice import AsyncFileSlice

__all__ = ["SendFileError", "ZeroCopy"]

logger = logging.getLogger(__name__)

_EAGAIN_PAUSE = 0.01


class SendFileError(OSError):
    """A sendfile transfer failed."""


class ZeroCopy:
    """Writes file slices to a target descriptor without copying through user space."""

    def __init__(self, fd: int) -> None:
        self._fd = operator.index(fd)

    @classmethod
    def from_file(cls, obj: Union[int, Any]) -> "ZeroCopy":
        """Target the descriptor of ``obj``: an int or anything with ``fileno()``."""
        fd = obj if isinstance(obj, int) else obj.fileno()
        return cls(fd)

    @property
    def fd(self) -> int:
        return self._fd

    async def copy_slice(self, source: AsyncFileSlice) -> int:
        """Send ``source`` to the target and return the number of bytes transferred.

        Stops early at the end of the source file. Raises SendFileError on failure.
        """
        return await task.spawn_blocking(
            self._copy_blocking, source.fd, source.position, source.length
        )

    def _copy_blocking(self, source_fd: int, position: int, size: int) -> int:
        if not hasattr(os, "sendfile"):
            raise SendFileError("sendfile is not available on this platform")
        total = 0
        offset = position
        if size == 0:
            return 0
        while True:
            remaining = size - total
            logger.debug(
                "zero copy source fd: %d offset: %d len: %d, target fd: %d",
                source_fd,
                offset,
                remaining,
                self._fd,
            )
            try:
                sent = os.sendfile(self._fd, source_fd, offset, remaining)
            except BlockingIOError:
                logger.debug("EAGAIN, continuing source: %d, target: %d", source_fd, self._fd)
                time.sleep(_EAGAIN_PAUSE)
                continue
            except OSError as err:
                logger.error("error sendfile: %s", err)
                raise SendFileError(err.errno, f"sendfile failed: {err.strerror}") from err
            total += sent
            offset += sent
            if sent == 0:
                return total
            if total >= size:
                return total
            logger.debug("current transferred: %d less than total: %d, continuing", total, size)