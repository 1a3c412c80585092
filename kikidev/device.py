"""A simulated kiki character device driven by control commands."""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import replace
from typing import Any, Callable

from kikidev.buffers import Buffer, BufferList, DuplicateBufferError
from kikidev.protocol import (
    BufferRequest,
    CorrectionStats,
    DeviceState,
    DeviceStatus,
    FillRequest,
    Ioctl,
    IoctlError,
    StatusReport,
)

DEVICE_NAME = "kiki"
DEVICE_CLASS_NAME = "kikidev"
MAX_WAIT_MSECS = 20000

_HIDDEN_DATA = (
    "The kiki device does not support the read/write interface. "
    "In order to use it, you should use the ioctl interface"
)

_log = logging.getLogger(__name__)


class DeviceBusyError(Exception):
    """The device is already open."""


class DeviceReadError(Exception):
    """More data was asked of the read interface than it holds."""


class DevicePanic(Exception):
    """A forbidden command was issued and the device gave up."""


class Device:
    """In-memory model of the kiki device and its command interface.

    ``should_fail`` decides whether a fallible command fails; by default
    each such command fails with a probability of one half.
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        should_fail: Callable[[], bool] | None = None,
        clock: Callable[[], int] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._rng = rng if rng is not None else random.Random()
        self._should_fail = should_fail if should_fail is not None else self._coin_flip
        self._clock = clock if clock is not None else (lambda: int(time.time()))
        self._sleep = sleep if sleep is not None else time.sleep
        self._lock = threading.Lock()
        self.buffers = BufferList()
        self.correction_stats = CorrectionStats()
        self._status = StatusReport()
        self._state = DeviceState.NIL
        self._selection = 0
        self._commands: dict[int, Callable[[Any], Any]] = {
            Ioctl.GETSTATUS: self._get_status,
            Ioctl.REQBUF: self._reqbuf,
            Ioctl.LISTBUF: self._listbuf,
            Ioctl.COUNTBUF: self._countbuf,
            Ioctl.SELBUF: self._selbuf,
            Ioctl.FILLBUF: self._fillbuf,
            Ioctl.INSPBUF: self._inspbuf,
            Ioctl.DUMPBUF: self._dumpbuf,
            Ioctl.CLRBUFS: self._clearbufs,
            Ioctl.WAITPRCWORK: self._wait_proc_work,
            Ioctl.IOINFO: self._ioinfo,
            Ioctl.GETSTATE: self._getstate,
            Ioctl.SETSTATELIS: self._setstatelis,
            Ioctl.SETSTATEANS: self._setstateans,
            Ioctl.DO_NOT_CALL: self._do_not_call,
            Ioctl.RST: self._reset,
            Ioctl.CORRECTION_STATS: self._get_correction_stats,
            Ioctl.RESET_CORRECTION_STATS: self._reset_correction_stats,
        }
        _log.info("kiki: device created successfully")

    # file operations

    def open(self) -> None:
        """Take exclusive use of the device."""
        if not self._lock.acquire(blocking=False):
            raise DeviceBusyError(f"{DEVICE_NAME}: device is busy")
        _log.info("kiki: opened device")

    def release(self) -> None:
        """Give the device back; the status returns to idle."""
        self._reset_status()
        if self._lock.locked():
            self._lock.release()
        _log.info("kiki: closed device")

    def read(self, length: int) -> bytes:
        """Read from the fixed text the read interface exposes."""
        if length < 0 or length > len(_HIDDEN_DATA):
            raise DeviceReadError("user space asked to read too much")
        return _HIDDEN_DATA[:length].encode()

    def ioctl(self, command: int, arg: Any = None) -> Any:
        """Run a control command; return its result or raise IoctlError."""
        _log.info("kiki: IOCTL: %s, %r", command, arg)
        handler = self._commands.get(int(command))
        if handler is None:
            _log.info("kiki: null ioctl called, no:%s", command)
            return None
        try:
            return handler(arg)
        except IoctlError:
            _log.warning("kiki: there was an error with the ioctl %s", command)
            raise

    # state inspection

    def reset(self) -> None:
        """Return the whole device to its initial state."""
        self._reset_status()
        self._state = DeviceState.NIL
        self._clear_selection()
        self.buffers.clear()

    def status(self) -> StatusReport:
        return self._status

    def state(self) -> DeviceState:
        return self._state

    # internals

    def _coin_flip(self) -> bool:
        return self._rng.getrandbits(32) % 2 == 1

    def _set_status(self, code: DeviceStatus, message: str) -> None:
        self._status = StatusReport(code, message)

    def _reset_status(self) -> None:
        self._set_status(DeviceStatus.IDLE, "idle")

    def _fail(self, code: DeviceStatus, message: str) -> IoctlError:
        self._set_status(code, message)
        return IoctlError(code, message)

    def _select(self, buffer_id: int) -> None:
        self._selection = buffer_id
        self._set_status(DeviceStatus.BUFSELECTED, "buffer selected")

    def _selected(self) -> int | None:
        if self._status.code == DeviceStatus.BUFSELECTED:
            return self._selection
        return None

    def _clear_selection(self) -> None:
        self._set_status(DeviceStatus.IDLE, "idle")

    # commands

    def _get_status(self, _arg: Any) -> StatusReport:
        self.correction_stats.get_status_called += 1
        return self._status

    def _reqbuf(self, request: BufferRequest) -> None:
        code = DeviceStatus.FAILED_REQBUF
        if self._should_fail():
            raise self._fail(code, "failed requiring buffer")
        try:
            buffer = Buffer.create(request.buffer_id, request.size, self._clock())
        except ValueError:
            raise self._fail(code, "kmalloc failed") from None
        try:
            self.buffers.append(buffer)
        except DuplicateBufferError:
            raise self._fail(code, "appending buffer list failed") from None
        self.correction_stats.create_buffer_called += 1

    def _listbuf(self, _arg: Any) -> list[int]:
        if self._should_fail():
            raise self._fail(DeviceStatus.FAILED_LISTBUF, "failed listing buffers")
        return self.buffers.ids()

    def _countbuf(self, _arg: Any) -> int:
        if self._should_fail():
            raise self._fail(DeviceStatus.FAILED_COUNTBUF, "failed counting buffers")
        self.correction_stats.count_buffers_called += 1
        return len(self.buffers)

    def _selbuf(self, buffer_id: int) -> None:
        code = DeviceStatus.FAILED_SELBUF
        if self._should_fail():
            raise self._fail(code, "failed at selecting buffer")
        if not self.buffers.contains(buffer_id):
            raise self._fail(code, "no such buffer")
        self._select(buffer_id)
        self.correction_stats.select_buffer_called += 1

    def _fillbuf(self, request: FillRequest | bytes) -> None:
        code = DeviceStatus.FAILED_FILLBUF
        if self._state != DeviceState.LIS:
            raise self._fail(code, "device in wrong state")
        buffer_id = self._selected()
        if buffer_id is None:
            raise self._fail(code, "no buffer selected to fill")
        if self._should_fail():
            raise self._fail(code, "failed filling buffer")
        buffer = self.buffers.get(buffer_id)
        if buffer is None:
            raise self._fail(code, "no such buffer id")
        if not isinstance(request, FillRequest):
            request = FillRequest(request)
        if request.length > buffer.length:
            raise self._fail(code, "filling request size is too big for this buffer")
        payload = request.payload
        buffer.data[: len(payload)] = payload
        buffer.touch(self._clock())
        self.correction_stats.fill_called += 1

    def _inspbuf(self, _arg: Any):
        code = DeviceStatus.FAILED_INSPBUF
        buffer_id = self._selected()
        if buffer_id is None:
            raise self._fail(code, "no buffer selected to inspect")
        if self._should_fail():
            raise self._fail(code, "failed inspecting buffer")
        buffer = self.buffers.get(buffer_id)
        if buffer is None:
            raise self._fail(code, "no such buffer id")
        self.correction_stats.inspect_called += 1
        return buffer.info()

    def _dumpbuf(self, _arg: Any) -> bytes:
        code = DeviceStatus.FAILED_DUMPBUF
        if self._state != DeviceState.ANS:
            raise self._fail(code, "device in wrong state")
        buffer_id = self._selected()
        if buffer_id is None:
            raise self._fail(code, "no buffer selected to dump")
        if self._should_fail():
            raise self._fail(code, "failed dumping buffer")
        buffer = self.buffers.get(buffer_id)
        if buffer is None:
            raise self._fail(code, "no such buffer id")
        data = bytes(buffer.data)
        buffer.touch(self._clock())
        self.correction_stats.dump_called += 1
        return data

    def _clearbufs(self, _arg: Any) -> None:
        if self._should_fail():
            raise self._fail(DeviceStatus.FAILED_CLRBUF, "failed clearing buffers")
        self.buffers.clear()
        self.correction_stats.clear_buffers_called += 1

    def _wait_proc_work(self, _arg: Any) -> None:
        msecs = self._rng.getrandbits(32) % MAX_WAIT_MSECS
        _log.info("kiki: wait for process %d ioctl: %d", threading.get_ident(), msecs)
        self._sleep(msecs / 1000)

    def _ioinfo(self, _arg: Any) -> int:
        code = DeviceStatus.FAILED_IOINFO
        if self._should_fail():
            raise self._fail(code, "failed giving io information")
        buffer_id = self._selected()
        if buffer_id is None:
            raise self._fail(code, "no buffer selected")
        return buffer_id

    def _getstate(self, _arg: Any) -> DeviceState:
        return self._state

    def _setstatelis(self, _arg: Any) -> None:
        if self._should_fail():
            raise self._fail(
                DeviceStatus.FAILED_SETSTATE,
                "failed setting the device to listening state",
            )
        self._state = DeviceState.LIS
        self.correction_stats.set_listen_state_called += 1

    def _setstateans(self, _arg: Any) -> None:
        if self._should_fail():
            raise self._fail(
                DeviceStatus.FAILED_SETSTATE,
                "failed setting the device to answering state",
            )
        self._state = DeviceState.ANS
        self.correction_stats.set_answer_state_called += 1

    def _do_not_call(self, _arg: Any) -> None:
        raise DevicePanic("i told you so...")

    def _reset(self, _arg: Any) -> None:
        self.reset()

    def _get_correction_stats(self, _arg: Any) -> CorrectionStats:
        return replace(self.correction_stats)

    def _reset_correction_stats(self, _arg: Any) -> None:
        self.correction_stats.reset()