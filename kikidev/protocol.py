"""Command numbers, status codes and request records of the kiki device."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import IntEnum

STATUS_MESSAGE_CAPACITY = 1024


class Ioctl(IntEnum):
    """Control command numbers understood by the device."""

    GETSTATUS = 0x1001
    REQBUF = 0x1002
    LISTBUF = 0x1003
    COUNTBUF = 0x1004
    SELBUF = 0x1008
    FILLBUF = 0x1010
    INSPBUF = 0x1020
    DUMPBUF = 0x1040
    CLRBUFS = 0x1080

    WAITPRCWORK = 0x1400
    IOINFO = 0x1800

    GETSTATE = 0x4000
    SETSTATELIS = 0x8000
    SETSTATEANS = 0x10000

    DO_NOT_CALL = 0x29A
    RST = 0x29B

    CORRECTION_STATS = 0x28A
    RESET_CORRECTION_STATS = 0x28B


class DeviceStatus(IntEnum):
    """Device status: normal conditions first, then error codes."""

    IDLE = 0x0
    BUFSELECTED = 0x100

    FAILED_REQBUF = 0x1
    FAILED_LISTBUF = 0x2
    FAILED_COUNTBUF = 0x3
    FAILED_CLRBUF = 0x4
    FAILED_SELBUF = 0x5
    FAILED_FILLBUF = 0x6
    FAILED_DUMPBUF = 0x7
    FAILED_INSPBUF = 0x8
    FAILED_IOINFO = 0x9
    FAILED_SETSTATE = 0xA

    @property
    def is_error(self) -> bool:
        """True for the failure codes."""
        return self not in (DeviceStatus.IDLE, DeviceStatus.BUFSELECTED)


class DeviceState(IntEnum):
    """Operating state of the device."""

    NIL = 0x0
    LIS = 0x1
    ANS = 0x2


@dataclass(frozen=True)
class StatusReport:
    """Current status number together with its message."""

    code: DeviceStatus = DeviceStatus.IDLE
    message: str = "idle"

    def __post_init__(self) -> None:
        if len(self.message.encode()) >= STATUS_MESSAGE_CAPACITY:
            raise ValueError("status message too long")
        object.__setattr__(self, "code", DeviceStatus(self.code))


@dataclass(frozen=True)
class BufferRequest:
    """Request to create a buffer with a given id and size."""

    buffer_id: int
    size: int


@dataclass
class FillRequest:
    """Request to copy the first ``length`` bytes of ``data`` into a buffer."""

    data: bytes
    length: int | None = None

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        if self.length is None:
            self.length = len(self.data)
        if self.length < 0 or self.length > len(self.data):
            raise ValueError("fill length does not fit the supplied data")

    @property
    def payload(self) -> bytes:
        """The bytes that are to be copied."""
        return self.data[: self.length]


@dataclass(frozen=True)
class BufferInfo:
    """Information returned when a buffer is inspected."""

    buffer_id: int
    length: int
    time_created: int
    time_accessed: int


@dataclass
class CorrectionStats:
    """Counters of successful calls to each device command."""

    get_status_called: int = 0
    clear_buffers_called: int = 0
    count_buffers_called: int = 0
    create_buffer_called: int = 0
    inspect_called: int = 0
    select_buffer_called: int = 0
    set_listen_state_called: int = 0
    set_answer_state_called: int = 0
    fill_called: int = 0
    dump_called: int = 0

    def reset(self) -> None:
        """Set every counter back to zero."""
        for counter in fields(self):
            setattr(self, counter.name, 0)


class IoctlError(Exception):
    """A device command failed; carries the status code it reported."""

    def __init__(self, status: DeviceStatus | int, message: str = "") -> None:
        self.status = DeviceStatus(status)
        self.message = message or self.status.name.lower()
        super().__init__(f"{self.message} (status {int(self.status):#x})")

    @property
    def code(self) -> int:
        """The numeric status code."""
        return int(self.status)