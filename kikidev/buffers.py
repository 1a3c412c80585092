"""Buffers held by the device and the list that keeps them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from kikidev.protocol import BufferInfo

MAX_BUFFER_LEN = 2048


class DuplicateBufferError(ValueError):
    """A buffer with the same id is already in the list."""


@dataclass
class Buffer:
    """A block of device memory with an id and access times."""

    buffer_id: int
    data: bytearray
    time_created: int
    time_accessed: int

    @classmethod
    def create(cls, buffer_id: int, size: int, now: int) -> Buffer:
        """Allocate a zero-filled buffer; a size of zero is refused."""
        if size <= 0:
            raise ValueError("buffer size must be positive")
        return cls(buffer_id, bytearray(size), now, now)

    @property
    def length(self) -> int:
        return len(self.data)

    def touch(self, now: int) -> None:
        """Record an access at time ``now``."""
        self.time_accessed = now

    def info(self) -> BufferInfo:
        """Inspection record for this buffer."""
        return BufferInfo(
            buffer_id=self.buffer_id,
            length=self.length,
            time_created=self.time_created,
            time_accessed=self.time_accessed,
        )


class BufferList:
    """Buffers keyed by id; iteration yields the newest first."""

    def __init__(self) -> None:
        self._buffers: dict[int, Buffer] = {}

    def append(self, buffer: Buffer) -> None:
        """Add a buffer; its id must not already be present."""
        if buffer.buffer_id in self._buffers:
            raise DuplicateBufferError(f"buffer id {buffer.buffer_id} already present")
        self._buffers[buffer.buffer_id] = buffer

    def contains(self, buffer_id: int) -> bool:
        return buffer_id in self._buffers

    def get(self, buffer_id: int) -> Buffer | None:
        """The buffer with that id, or None."""
        return self._buffers.get(buffer_id)

    def ids(self) -> list[int]:
        """Ids in iteration order."""
        return [buffer.buffer_id for buffer in self]

    def clear(self) -> None:
        self._buffers.clear()

    def __len__(self) -> int:
        return len(self._buffers)

    def __iter__(self) -> Iterator[Buffer]:
        return iter(reversed(list(self._buffers.values())))