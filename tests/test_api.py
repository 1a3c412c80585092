import io
import random

import pytest

from kikidev.api import (
    BufferSizeError,
    DeviceUnavailableError,
    Handle,
    KikiError,
)
from kikidev.device import Device
from kikidev.protocol import DeviceStatus, Ioctl, IoctlError


@pytest.fixture
def device():
    return Device(rng=random.Random(2018))


@pytest.fixture
def dev(device):
    handle = Handle.open(device)
    device.ioctl(Ioctl.RST)
    device.ioctl(Ioctl.RESET_CORRECTION_STATS)
    yield handle
    handle.close()


def stats(handle):
    return handle.device.ioctl(Ioctl.CORRECTION_STATS)


def reset_stats(handle):
    handle.device.ioctl(Ioctl.RESET_CORRECTION_STATS)


def reset_buffers(handle):
    handle.device.ioctl(Ioctl.RST)


# init / deinit


def test_can_init_device_without_crash(device):
    handle = Handle.open(device)
    assert handle.closed is False
    handle.close()


def test_cannot_init_device_twice(device):
    first = Handle.open(device)
    with pytest.raises(DeviceUnavailableError):
        Handle.open(device)
    first.close()


def test_can_deinit_device_without_crash(device):
    handle = Handle.open(device)
    handle.close()
    assert handle.closed is True


def test_can_reinit_after_deinit(device):
    Handle.open(device).close()
    with Handle.open(device) as handle:
        assert handle.get_status().code == DeviceStatus.IDLE


def test_closed_handle_refuses_commands(device):
    handle = Handle.open(device)
    handle.close()
    with pytest.raises(KikiError):
        handle.clear_buffers()


# status


def test_can_get_status_when_just_initiated(dev):
    status = dev.get_status()
    assert status.code == 0
    assert status.message == "idle"


def test_can_get_status_when_ioctl_failed(dev):
    with pytest.raises(IoctlError):
        while True:
            dev.device.ioctl(Ioctl.SETSTATELIS)
    status = dev.get_status()
    assert status.code == 10
    assert status.message == "failed setting the device to listening state"


def test_status_is_effectively_gotten(dev):
    dev.get_status()
    assert stats(dev).get_status_called == 1


# clear / count


def test_clear_buffers_gets_effectively_called(dev):
    dev.clear_buffers()
    assert stats(dev).clear_buffers_called == 1


def test_clear_buffers_removes_buffers(dev):
    dev.new_buffer(256)
    dev.clear_buffers()
    assert dev.count_buffers() == 0


def test_count_ioctl_is_effectively_called(dev):
    dev.count_buffers()
    assert stats(dev).count_buffers_called == 1


def test_count_is_zero_after_init(dev):
    assert dev.count_buffers() == 0


def test_can_count_2_buffers(dev):
    dev.new_buffer(256)
    dev.new_buffer(256)
    reset_stats(dev)
    count = dev.count_buffers()
    assert stats(dev).count_buffers_called == 1
    assert count == 2


def test_can_count_20_buffers(dev):
    for _ in range(20):
        dev.new_buffer(256)
    assert stats(dev).create_buffer_called == 20
    assert dev.count_buffers() == 20


# new buffer / ids


def test_can_create_new_buffer(dev):
    buffer = dev.new_buffer(256)
    assert buffer.buffer_id == 1


def test_buffer_was_effectively_created(dev):
    dev.new_buffer(256)
    assert stats(dev).create_buffer_called == 1


def test_can_create_2_buffers(dev):
    dev.new_buffer(256)
    dev.new_buffer(256)
    assert stats(dev).create_buffer_called == 2


def test_can_create_20_buffers(dev):
    buffers = [dev.new_buffer(256) for _ in range(20)]
    assert len({b.buffer_id for b in buffers}) == 20
    assert stats(dev).create_buffer_called == 20


def test_id_is_coherent_when_new_buffers_created(dev):
    first = dev.new_buffer(256)
    second = dev.new_buffer(256)
    assert first.buffer_id != second.buffer_id
    assert first.buffer_id > 0
    assert second.buffer_id > 0


def test_duplicate_id_eventually_raises(dev):
    dev.new_buffer_with_id(256, 7)
    with pytest.raises(KikiError):
        dev.new_buffer_with_id(256, 7)


def test_always_failing_device_raises():
    device = Device(should_fail=lambda: True)
    with Handle.open(device) as handle:
        with pytest.raises(KikiError):
            handle.new_buffer(256)


# inspect / size


def test_can_inspect_one_buffer_effectively(dev):
    buffer = dev.new_buffer(256)
    buffer.inspect()
    assert buffer.buffer_id != 0
    assert stats(dev).inspect_called == 1


def test_buffer_id_is_coherent_with_id_function(dev):
    buffer = dev.new_buffer(256)
    info = buffer.inspect()
    assert info.buffer_id == buffer.buffer_id


def test_buffer_length_is_correct(dev):
    buffer = dev.new_buffer(256)
    assert buffer.inspect().length == 256


def test_buffer_size_is_ok(dev):
    buffer = dev.new_buffer(256)
    assert buffer.size() == 256


# list


def test_list_is_empty_when_no_buffer(dev):
    assert dev.list_buffers() == []


def test_list_is_not_empty_when_has_one_element(dev):
    dev.new_buffer(256)
    assert stats(dev).create_buffer_called == 1
    assert len(dev.list_buffers()) == 1


def _create_twenty(handle):
    created = []
    for i in range(20):
        created.append(handle.new_buffer(256))
        assert stats(handle).create_buffer_called == i + 1
    return created


def test_list_has_twenty_elements(dev):
    _create_twenty(dev)
    assert len(dev.list_buffers()) == 20


def test_list_has_plausible_ids(dev):
    _create_twenty(dev)
    assert all(b.buffer_id > 0 for b in dev.list_buffers())


def test_list_has_same_ids(dev):
    created = _create_twenty(dev)
    listed = dev.list_buffers()
    assert sorted(b.buffer_id for b in listed) == sorted(b.buffer_id for b in created)


# write / read


def test_can_write_to_a_buffer_fully(dev):
    buffer = dev.new_buffer(256)
    data = b"some buffer data".ljust(256, b"\0")
    assert buffer.write(data) == 256
    counters = stats(dev)
    assert counters.select_buffer_called >= 1
    assert counters.set_listen_state_called >= 1
    assert counters.fill_called == 1


def test_can_write_to_a_buffer_partially(dev):
    buffer = dev.new_buffer(256)
    data = b"some buffer data"
    assert buffer.write(data) == len(data)
    counters = stats(dev)
    assert counters.select_buffer_called >= 1
    assert counters.set_listen_state_called >= 1
    assert counters.fill_called == 1


def test_cannot_write_if_size_greater_than_max(dev):
    buffer = dev.new_buffer(256)
    with pytest.raises(BufferSizeError):
        buffer.write(b"x" * 257)


def test_can_read_a_non_written_buffer_fully(dev):
    buffer = dev.new_buffer(256)
    assert len(buffer.read(256)) == 256


def test_can_read_a_written_buffer_fully(dev):
    buffer = dev.new_buffer(256)
    data = bytes(range(256))
    assert buffer.write(data) == 256
    assert buffer.read(256) == data


def test_can_read_a_written_buffer_until_nul_char(dev):
    buffer = dev.new_buffer(256)
    data = b"some buffer data"
    assert buffer.write(data) == len(data)
    assert buffer.read(len(data)) == data


def test_cannot_read_more_than_size(dev):
    buffer = dev.new_buffer(16)
    with pytest.raises(BufferSizeError):
        buffer.read(17)


# save / load


def _saved(buffer):
    stream = io.BytesIO()
    buffer.save(stream)
    return stream.getvalue()


def test_save_format(dev):
    buffer = dev.new_buffer(256)
    buffer.write(b"some buffer data".ljust(256, b"\0"))
    saved = _saved(buffer)
    assert saved.startswith(b"1\n256\nsome buffer data")
    assert len(saved) == len(b"1\n256\n") + 256


def test_can_save_buffer_and_load_it_back(dev):
    buffer = dev.new_buffer(256)
    assert buffer.write(b"some buffer data".ljust(256, b"\0")) == 256
    saved = _saved(buffer)
    reset_buffers(dev)
    loaded = dev.load_buffer(io.BytesIO(saved))
    assert loaded.size() == 256


def test_saving_and_loading_keep_same_id(dev):
    dev.new_buffer(256)
    buffer = dev.new_buffer(256)
    buffer.write(b"some buffer data".ljust(256, b"\0"))
    saved = _saved(buffer)
    reset_buffers(dev)
    loaded = dev.load_buffer(io.BytesIO(saved))
    assert loaded.buffer_id == buffer.buffer_id == 2


def test_load_truncated_buffer_raises(dev):
    with pytest.raises(KikiError):
        dev.load_buffer(io.BytesIO(b"3\n256\nshort"))


def test_load_malformed_header_raises(dev):
    with pytest.raises(KikiError):
        dev.load_buffer(io.BytesIO(b"not a number\n"))