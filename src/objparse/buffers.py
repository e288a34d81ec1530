"""GPU-style buffer allocation seam for finished mesh groups."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from objparse.errors import AllocationError


class BufferUsage(Enum):
    VERTEX = "vertex"
    INDEX = "index"


class BufferAllocator(Protocol):
    """Receives each flushed group's packed vertex and index data."""

    def allocate(self, byte_size: int, usage: BufferUsage) -> Any:
        """Reserve ``byte_size`` bytes and return an opaque handle.

        Raises:
            AllocationError: If the request cannot be satisfied.
        """
        ...

    def upload(self, handle: Any, data: bytes) -> None: ...


@dataclass(frozen=True)
class BufferHandle:
    id: int
    usage: BufferUsage
    byte_size: int


class MemoryBufferAllocator:
    """Keeps buffers as ``bytearray`` objects, optionally bounded by a total capacity."""

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity
        self._buffers: list[bytearray] = []
        self.handles: list[BufferHandle] = []

    @property
    def used(self) -> int:
        return sum(handle.byte_size for handle in self.handles)

    def allocate(self, byte_size: int, usage: BufferUsage) -> BufferHandle:
        if byte_size < 0:
            raise AllocationError(f"Cannot allocate a negative size ({byte_size} bytes)")
        if self.capacity is not None and self.used + byte_size > self.capacity:
            raise AllocationError(
                f"Cannot allocate {byte_size} bytes for {usage.value} data: "
                f"{self.capacity - self.used} of {self.capacity} bytes left"
            )
        handle = BufferHandle(len(self._buffers), usage, byte_size)
        self._buffers.append(bytearray(byte_size))
        self.handles.append(handle)
        return handle

    def upload(self, handle: BufferHandle, data: bytes) -> None:
        if len(data) > handle.byte_size:
            raise AllocationError(
                f"Upload of {len(data)} bytes overflows buffer {handle.id} "
                f"({handle.byte_size} bytes)"
            )
        self._buffers[handle.id][: len(data)] = data

    def data(self, handle: BufferHandle) -> bytes:
        return bytes(self._buffers[handle.id])
