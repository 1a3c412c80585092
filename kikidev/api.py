"""User-space interface to the kiki device.

Every device command may fail at random. The calls here repeat a command,
or a whole sequence of commands, until it succeeds. A command that keeps
failing is given up after ``MAX_ATTEMPTS`` tries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Callable, TypeVar

from kikidev.device import Device, DeviceBusyError
from kikidev.protocol import (
    BufferInfo,
    BufferRequest,
    FillRequest,
    Ioctl,
    IoctlError,
    StatusReport,
)

MAX_ATTEMPTS = 1000

_T = TypeVar("_T")


class KikiError(Exception):
    """An operation on the kiki device could not be completed."""


class DeviceUnavailableError(KikiError):
    """The device could not be opened."""


class BufferSizeError(KikiError):
    """The requested length does not fit the buffer."""


def _persist(call: Callable[[], _T]) -> _T:
    """Run ``call`` until it stops raising IoctlError."""
    last: IoctlError | None = None
    for _ in range(MAX_ATTEMPTS):
        try:
            return call()
        except IoctlError as error:
            last = error
    raise KikiError(f"device command kept failing: {last}") from last


class Handle:
    """An open session on a kiki device."""

    def __init__(self, device: Device) -> None:
        self._device: Device | None = device

    @classmethod
    def open(cls, device: Device | None = None) -> Handle:
        """Open ``device`` (a fresh one if omitted) for exclusive use."""
        device = device if device is not None else Device()
        try:
            device.open()
        except DeviceBusyError as error:
            raise DeviceUnavailableError(str(error)) from error
        return cls(device)

    @property
    def device(self) -> Device:
        """The underlying device; refused once the handle is closed."""
        if self._device is None:
            raise KikiError("device handle is closed")
        return self._device

    @property
    def closed(self) -> bool:
        return self._device is None

    def close(self) -> None:
        """Release the device; closing twice does nothing."""
        if self._device is not None:
            self._device.release()
            self._device = None

    def __enter__(self) -> Handle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _command(self, command: Ioctl, arg=None):
        return _persist(lambda: self.device.ioctl(command, arg))

    def get_status(self) -> StatusReport:
        """The device's current status and message."""
        return self.device.ioctl(Ioctl.GETSTATUS)

    def clear_buffers(self) -> None:
        """Remove every buffer from the device."""
        self._command(Ioctl.CLRBUFS)

    def count_buffers(self) -> int:
        return self._command(Ioctl.COUNTBUF)

    def list_buffers(self) -> list[BufferHandle]:
        """Handles for every buffer on the device."""
        if self.count_buffers() == 0:
            return []
        ids = self._command(Ioctl.LISTBUF)
        return [BufferHandle(self, buffer_id) for buffer_id in ids]

    def new_buffer(self, size: int) -> BufferHandle:
        """Create a buffer whose id is one more than the largest existing id."""
        new_id = max((b.buffer_id for b in self.list_buffers()), default=0)
        return self.new_buffer_with_id(size, new_id + 1)

    def new_buffer_with_id(self, size: int, buffer_id: int) -> BufferHandle:
        """Create a buffer of ``size`` bytes with a chosen id."""
        self._command(Ioctl.REQBUF, BufferRequest(buffer_id=buffer_id, size=size))
        return BufferHandle(self, buffer_id)

    def load_buffer(self, stream: BinaryIO) -> BufferHandle:
        """Recreate a buffer from what ``BufferHandle.save`` wrote."""
        try:
            buffer_id = int(stream.readline())
            size = int(stream.readline())
        except ValueError as error:
            raise KikiError("malformed buffer header") from error
        data = stream.read(size)
        if len(data) != size:
            raise KikiError("saved buffer is truncated")
        return self.new_buffer_with_id(size, buffer_id)


@dataclass(frozen=True)
class BufferHandle:
    """A reference to one buffer on an open device."""

    handle: Handle = field(compare=False, repr=False)
    buffer_id: int

    def _select_then(self, command: Ioctl, arg=None):
        device = self.handle.device
        _persist(lambda: device.ioctl(Ioctl.SELBUF, self.buffer_id))
        return device.ioctl(command, arg)

    def inspect(self) -> BufferInfo:
        return _persist(lambda: self._select_then(Ioctl.INSPBUF))

    def size(self) -> int:
        return self.inspect().length

    def write(self, data: bytes) -> int:
        """Fill the start of the buffer with ``data``; return its length."""
        request = FillRequest(bytes(data))
        if request.length > self.size():
            raise BufferSizeError(
                f"{request.length} bytes do not fit buffer {self.buffer_id}"
            )
        device = self.handle.device

        def fill() -> None:
            _persist(lambda: self._select_then(Ioctl.SETSTATELIS))
            device.ioctl(Ioctl.FILLBUF, request)

        _persist(fill)
        return request.length

    def read(self, length: int) -> bytes:
        """The first ``length`` bytes of the buffer."""
        if length > self.size():
            raise BufferSizeError(
                f"cannot read {length} bytes from buffer {self.buffer_id}"
            )
        device = self.handle.device

        def dump() -> bytes:
            _persist(lambda: self._select_then(Ioctl.SETSTATEANS))
            return device.ioctl(Ioctl.DUMPBUF)

        return _persist(dump)[:length]

    def save(self, stream: BinaryIO) -> None:
        """Write the buffer's id, size and contents to ``stream``."""
        size = self.size()
        data = self.read(size)
        stream.write(f"{self.buffer_id}\n{size}\n".encode())
        stream.write(data)
        stream.flush()