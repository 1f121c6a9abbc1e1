"""Memory-mapped files with locked access and flushing off the event loop."""

from __future__ import annotations

import asyncio
import mmap
import os
import threading
from typing import IO, Union

__all__ = ["MemoryMappedMutFile", "MemoryMappedFile"]

PathLike = Union[str, "os.PathLike[str]"]


class MemoryMappedMutFile:
    """A writable memory map of a whole file, guarded by a lock."""

    def __init__(self, mapped: mmap.mmap, file: IO[bytes]) -> None:
        self._map = mapped
        self.file = file
        self._lock = threading.RLock()

    @classmethod
    async def create(cls, path: PathLike, length: int) -> "MemoryMappedMutFile":
        """Open or create ``path`` without truncating, resize it to ``length`` and map it."""

        def _open() -> "MemoryMappedMutFile":
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
            file = os.fdopen(fd, "r+b")
            try:
                os.ftruncate(file.fileno(), length)
                mapped = mmap.mmap(file.fileno(), length, access=mmap.ACCESS_WRITE)
            except BaseException:
                file.close()
                raise
            return cls(mapped, file)

        return await asyncio.to_thread(_open)

    def __len__(self) -> int:
        return len(self._map)

    def __getitem__(self, key: Union[int, slice]) -> Union[int, bytes]:
        with self._lock:
            return self._map[key]

    def __setitem__(self, key: Union[int, slice], value: Union[int, bytes]) -> None:
        with self._lock:
            self._map[key] = value

    def __bytes__(self) -> bytes:
        with self._lock:
            return self._map[:]

    def write_bytes(self, pos: int, data: bytes) -> None:
        """Copy ``data`` into the map starting at ``pos``."""
        end = pos + len(data)
        if pos < 0 or end > len(self._map):
            raise IndexError(
                f"range {pos}..{end} out of bounds for map of length {len(self._map)}"
            )
        with self._lock:
            self._map[pos:end] = data

    def _flush(self) -> None:
        with self._lock:
            self._map.flush()

    async def flush(self) -> None:
        """Write outstanding changes back to the file and wait for completion."""
        await asyncio.to_thread(self._flush)

    async def flush_async(self) -> None:
        """Flush outstanding changes from a worker thread."""
        await asyncio.to_thread(self._flush)

    async def flush_range(self, offset: int, length: int) -> None:
        """Flush the bytes in ``offset .. offset + length``."""
        if offset < 0 or length < 0 or offset + length > len(self._map):
            raise IndexError("flush range out of bounds")

        def _flush_range() -> None:
            start = offset - offset % mmap.ALLOCATIONGRANULARITY
            with self._lock:
                self._map.flush(start, length + (offset - start))

        await asyncio.to_thread(_flush_range)

    def close(self) -> None:
        with self._lock:
            if not self._map.closed:
                self._map.close()
        self.file.close()

    def __enter__(self) -> "MemoryMappedMutFile":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class MemoryMappedFile:
    """A read-only memory map of a whole file."""

    def __init__(self, mapped: mmap.mmap, file: IO[bytes]) -> None:
        self._map = mapped
        self.file = file
        self._lock = threading.RLock()

    @classmethod
    async def open(cls, path: PathLike, min_len: int) -> "MemoryMappedFile":
        """Map an existing file; an empty file is first grown to ``min_len`` bytes."""

        def _open() -> "MemoryMappedFile":
            file = open(path, "rb")
            try:
                if os.fstat(file.fileno()).st_size == 0:
                    with open(path, "r+b") as writer:
                        os.ftruncate(writer.fileno(), min_len)
                mapped = mmap.mmap(file.fileno(), 0, access=mmap.ACCESS_READ)
            except BaseException:
                file.close()
                raise
            return cls(mapped, file)

        return await asyncio.to_thread(_open)

    def __len__(self) -> int:
        return len(self._map)

    def __getitem__(self, key: Union[int, slice]) -> Union[int, bytes]:
        with self._lock:
            return self._map[key]

    def __bytes__(self) -> bytes:
        with self._lock:
            return self._map[:]

    def close(self) -> None:
        with self._lock:
            if not self._map.closed:
                self._map.close()
        self.file.close()

    def __enter__(self) -> "MemoryMappedFile":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()