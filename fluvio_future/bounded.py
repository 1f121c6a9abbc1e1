"""A file sink that tracks how many bytes it holds against an optional limit."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Union

from . import fs
from .file_slice import AsyncFileSlice

__all__ = [
    "BoundedFileOption",
    "BoundedFileSinkError",
    "MaxLenReachedError",
    "BoundedFileSink",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class BoundedFileOption:
    """Options for a bounded sink; ``max_len`` of None means no limit."""

    max_len: Optional[int] = None


class BoundedFileSinkError(Exception):
    """Base error for bounded file sinks."""


class MaxLenReachedError(BoundedFileSinkError):
    """The sink would grow past its maximum length."""

    def __init__(self, message: str = "max len reached") -> None:
        super().__init__(message)


class BoundedFileSink:
    """File sink that counts the bytes written to it.

    Writes are never refused; callers use :meth:`can_be_appended` to check
    the limit before writing.
    """

    def __init__(
        self,
        file: IO[bytes],
        path: PathLike,
        current_len: int = 0,
        option: Optional[BoundedFileOption] = None,
    ) -> None:
        self._file = file
        self._path = Path(path)
        self._current_len = current_len
        self.option = option if option is not None else BoundedFileOption()

    @classmethod
    async def create(
        cls, path: PathLike, option: Optional[BoundedFileOption] = None
    ) -> "BoundedFileSink":
        """Create or truncate ``path`` and open it for writing."""
        file = await fs.create(path)
        return cls(file, path, 0, option)

    @classmethod
    async def open_write(
        cls, path: PathLike, option: Optional[BoundedFileOption] = None
    ) -> "BoundedFileSink":
        """Open an existing file for writing at its end, counting its current size."""
        file = await asyncio.to_thread(open, path, "r+b")
        size = (await asyncio.to_thread(os.fstat, file.fileno())).st_size
        file.seek(0, os.SEEK_END)
        return cls(file, path, size, option)

    @classmethod
    async def open_append(
        cls, path: PathLike, option: Optional[BoundedFileOption] = None
    ) -> "BoundedFileSink":
        """Open ``path`` for reading and appending, creating it if needed."""
        file = await fs.open_read_append(path)
        size = (await asyncio.to_thread(os.fstat, file.fileno())).st_size
        return cls(file, path, size, option)

    @property
    def current_len(self) -> int:
        return self._current_len

    @property
    def path(self) -> Path:
        return self._path

    @property
    def file(self) -> IO[bytes]:
        return self._file

    def can_be_appended(self, buf_len: int) -> bool:
        """Whether ``buf_len`` more bytes fit within the maximum length."""
        max_len = self.option.max_len
        if max_len is None:
            return True
        return self._current_len + buf_len <= max_len

    async def write(self, data: bytes) -> int:
        """Write some of ``data`` and return how many bytes were written."""
        written = await asyncio.to_thread(self._file.write, data)
        self._current_len += written
        logger.debug("success write: %d, current len: %d", written, self._current_len)
        return written

    async def write_all(self, data: bytes) -> None:
        """Write every byte of ``data``."""
        await fs.write_buf_all(self, data)

    async def flush(self) -> None:
        await asyncio.to_thread(self._file.flush)

    async def close(self) -> None:
        await asyncio.to_thread(self._file.close)

    def slice_from(self, position: int, length: int) -> AsyncFileSlice:
        """Slice of the underlying file, without bounds checks."""
        return fs.raw_slice(self._file, position, length)

    async def __aenter__(self) -> "BoundedFileSink":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()