"""File helpers: opening modes, slicing by descriptor and writing whole buffers."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from typing import IO, Any, Optional, Union

from .file_slice import AsyncFileSlice

__all__ = [
    "create",
    "open_file",
    "open_read_write",
    "open_read_append",
    "reset_to_beginning",
    "raw_slice",
    "as_slice",
    "write_buf_all",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


async def create(path: PathLike) -> IO[bytes]:
    """Open for writing only, creating or truncating the file."""
    return await asyncio.to_thread(open, path, "wb")


async def open_file(path: PathLike) -> IO[bytes]:
    """Open an existing file for reading only."""
    return await asyncio.to_thread(open, path, "rb")


def _open_read_write(path: PathLike) -> IO[bytes]:
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
    return os.fdopen(fd, "r+b")


async def open_read_write(path: PathLike) -> IO[bytes]:
    """Open for reading and writing, creating the file but not truncating it."""
    return await asyncio.to_thread(_open_read_write, path)


async def open_read_append(path: PathLike) -> IO[bytes]:
    """Open for reading and appending, creating the file if needed."""
    return await asyncio.to_thread(open, path, "a+b")


async def reset_to_beginning(file: IO[bytes]) -> None:
    """Move the file position back to the start."""
    file.seek(0)


def raw_slice(file: IO[Any], position: int, length: int) -> AsyncFileSlice:
    """Slice of ``file`` by descriptor, without checking its bounds."""
    return AsyncFileSlice(file.fileno(), position, length)


async def as_slice(
    file: IO[Any], position: int, desired_len: Optional[int] = None
) -> AsyncFileSlice:
    """Slice of ``file`` from ``position``; without a length, up to the end of the file.

    Raises EOFError when the position or the desired length reaches past the data.
    """
    stat = await asyncio.to_thread(os.fstat, file.fileno())
    size = stat.st_size
    if position >= size:
        raise EOFError("position is greater than available len")
    if desired_len is not None:
        if position + desired_len >= size:
            raise EOFError("not available bytes")
        slice_len = desired_len
    else:
        slice_len = size - position
    logger.debug("file slice: position: %d, len: %d", position, size)
    return raw_slice(file, position, slice_len)


async def write_buf_all(writer: Any, buf: Any) -> None:
    """Write every byte of ``buf`` to ``writer``, whose ``write`` may be sync or async.

    Raises OSError if the writer accepts zero bytes.
    """
    remaining = memoryview(buf).cast("B")
    while remaining:
        written = writer.write(remaining)
        if inspect.isawaitable(written):
            written = await written
        if written is None:
            written = len(remaining)
        if written == 0:
            raise OSError("failed to write whole buffer")
        remaining = remaining[written:]