"""A region of a file identified by its descriptor."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["AsyncFileSlice"]


@dataclass(frozen=True)
class AsyncFileSlice:
    """Slice of a file: descriptor, starting position and length in bytes."""

    fd: int = 0
    position: int = 0
    length: int = 0

    def __len__(self) -> int:
        return self.length

    def is_empty(self) -> bool:
        return self.length == 0

    def fileno(self) -> int:
        return self.fd