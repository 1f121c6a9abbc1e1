"""A file handle that several holders can share, one operation at a time."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import IO

__all__ = ["SharedAsyncFile"]

logger = logging.getLogger(__name__)


class SharedAsyncFile:
    """Shares one underlying file; copies see the same position.

    Each read or seek holds a lock, so only one operation runs at a time.
    """

    def __init__(self, file: IO[bytes]) -> None:
        self._file = file
        self._lock = threading.Lock()

    def __copy__(self) -> "SharedAsyncFile":
        other = SharedAsyncFile.__new__(SharedAsyncFile)
        other._file = self._file
        other._lock = self._lock
        return other

    @property
    def file(self) -> IO[bytes]:
        return self._file

    def _locked_read(self, size: int) -> bytes:
        with self._lock:
            return self._file.read(size)

    def _locked_seek(self, offset: int, whence: int) -> int:
        with self._lock:
            return self._file.seek(offset, whence)

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining if negative)."""
        logger.debug("reading bytes")
        return await asyncio.to_thread(self._locked_read, size)

    async def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the shared position and return the new absolute position."""
        return await asyncio.to_thread(self._locked_seek, offset, whence)

    async def read_to_end(self) -> bytes:
        """Read everything from the current position to the end of the file."""
        return await self.read(-1)