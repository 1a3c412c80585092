# kikidev

`kikidev` simulates the *kiki* device. The device is a deliberately
unreliable in-memory store of byte buffers, and it is driven through
numbered control commands. Most commands fail at random half of the time,
so a client has to retry until a command succeeds. The package also
provides a client API that does the retrying for you.

## Installation

```
pip install kikidev
```

To run the test suite:

```
pip install "kikidev[test]"
pytest
```

## Modules

- `kikidev.protocol` defines the following:
  - the command numbers (`Ioctl`);
  - the device statuses (`DeviceStatus`, with an `is_error` property);
  - the device states (`DeviceState`: `NIL`, `LIS`, `ANS`);
  - the records that commands take and return (`StatusReport`, `BufferRequest`, `FillRequest`, `BufferInfo`);
  - the per-command success counters (`CorrectionStats`, with `reset()`);
  - `IoctlError`, which carries the `status` and `message` of a failed command.
- `kikidev.buffers` holds the device's storage:
  - `Buffer` is a zero-filled block with an id and creation and access times;
  - `BufferList` keeps buffers by unique id and iterates newest first.
- `kikidev.device` provides `Device`, the simulated device. It has the methods `open`, `release`, `read`, `ioctl`, `reset`, `status` and `state`.
- `kikidev.api` is the client API. `Handle` and `BufferHandle` repeat failing commands until they succeed.

## Using the client API

```python
import io

from kikidev.api import Handle
from kikidev.device import Device

device = Device()

with Handle.open(device) as handle:
    buffer = handle.new_buffer(256)       # id is the largest existing id + 1
    buffer.write(b"some buffer data")     # returns 16
    print(buffer.read(16))                # b'some buffer data'
    print(buffer.size())                  # 256
    print(handle.count_buffers())         # 1

    saved = io.BytesIO()
    buffer.save(saved)                    # b"<id>\n<size>\n" followed by the bytes

    handle.clear_buffers()
    saved.seek(0)
    restored = handle.load_buffer(saved)  # a buffer of the same id and size
```

`load_buffer` reads the saved header and contents and checks them. It
creates a buffer with the saved id and size. It does not write the saved
contents into the new buffer, so the new buffer starts zero-filled.

The other calls behave as follows:

- `Handle.list_buffers()` returns a `BufferHandle` for every buffer. If there are none, it returns an empty list.
- `Handle.new_buffer_with_id(size, buffer_id)` creates a buffer with an id that you choose.
- `BufferHandle.inspect()` returns a `BufferInfo` with the id, the length and the two timestamps.
- `Handle.get_status()` returns the device's last `StatusReport`, which holds a code and a message. It is not retried. After a failed command the report describes that failure. For example, after a failed `SETSTATELIS` the code is 10 (`DeviceStatus.FAILED_SETSTATE`) and the message is `"failed setting the device to listening state"`.

The client API raises these errors:

- `BufferSizeError` when `write` is given more bytes than the buffer holds, or when `read` asks for more bytes than it holds.
- `DeviceUnavailableError` when `Handle.open` is given a device that is already open.
- `KikiError` when a closed handle is used, or when a saved buffer is malformed or truncated. It is also raised when a command still fails after `kikidev.api.MAX_ATTEMPTS` (1000) tries.

`KikiError` is the base class of the other two.

## Talking to the device directly

```python
from kikidev.device import Device
from kikidev.protocol import Ioctl, IoctlError

device = Device()
device.open()
try:
    count = device.ioctl(Ioctl.COUNTBUF)
except IoctlError as error:
    print(error)  # the command failed at random; try again
finally:
    device.release()
```

On success `ioctl` returns the command's result, for example a count, a
list of ids, a `BufferInfo` or the dumped bytes. On failure it raises
`IoctlError` and records the failure as the device status. A command
number the device does not know returns `None`.

Some commands have special behaviour:

- `Ioctl.DO_NOT_CALL` raises `DevicePanic`.
- `Ioctl.WAITPRCWORK` sleeps for a random time of up to 20 seconds.
- `Ioctl.CORRECTION_STATS` returns a copy of the call counters.

The device's file-style methods work as follows:

- Only one user can hold the device at a time. A second `open()` raises `DeviceBusyError`.
- `release()` frees the device and sets its status back to idle.
- `read(length)` returns the start of a fixed notice saying that the device must be used through control commands. Asking for more than the notice holds raises `DeviceReadError`.

`Device` takes optional keyword arguments, which make it deterministic in tests:

- `should_fail`: a callable that decides whether a fallible command fails.
- `rng`: the random generator.
- `clock`: returns the current time in seconds.
- `sleep`: the function used for waiting.

```python
device = Device(should_fail=lambda: False, clock=lambda: 0, sleep=lambda s: None)
```

## What it does not do

The device exists only in memory, inside the Python process. The package
does not create an operating-system device node and does not talk to real
hardware. Buffers are not kept between runs unless you save them with
`BufferHandle.save`. The package has no command-line program.