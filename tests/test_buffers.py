import pytest

from kikidev.buffers import MAX_BUFFER_LEN, Buffer, BufferList, DuplicateBufferError
from kikidev.protocol import BufferInfo


def make_list(*ids):
    buffers = BufferList()
    for buffer_id in ids:
        buffers.append(Buffer.create(buffer_id, 256, 100))
    return buffers


def test_create_sets_fields():
    buffer = Buffer.create(1, 256, 100)
    assert buffer.buffer_id == 1
    assert buffer.length == 256
    assert buffer.time_created == 100
    assert buffer.time_accessed == 100


def test_create_zero_size_refused():
    with pytest.raises(ValueError):
        Buffer.create(1, 0, 100)


def test_max_buffer_len_buffer_can_be_created():
    buffer = Buffer.create(1, MAX_BUFFER_LEN, 100)
    assert buffer.length == 2048


def test_touch_updates_access_only():
    buffer = Buffer.create(1, 256, 100)
    buffer.touch(150)
    assert buffer.time_accessed == 150
    assert buffer.time_created == 100


def test_info_reflects_buffer():
    buffer = Buffer.create(4, 256, 100)
    buffer.touch(120)
    assert buffer.info() == BufferInfo(4, 256, 100, 120)


def test_empty_list():
    buffers = BufferList()
    assert len(buffers) == 0
    assert buffers.ids() == []
    assert list(buffers) == []


def test_append_and_lookup():
    buffers = make_list(1, 2)
    assert len(buffers) == 2
    assert buffers.contains(2)
    assert not buffers.contains(3)
    assert buffers.get(2).buffer_id == 2
    assert buffers.get(3) is None


def test_iteration_is_newest_first():
    buffers = make_list(1, 2, 3)
    assert buffers.ids() == [3, 2, 1]
    assert [b.buffer_id for b in buffers] == [3, 2, 1]


def test_duplicate_id_rejected():
    buffers = make_list(1)
    with pytest.raises(DuplicateBufferError):
        buffers.append(Buffer.create(1, 256, 100))
    assert len(buffers) == 1


def test_clear_empties_list():
    buffers = make_list(1, 2, 3)
    buffers.clear()
    assert len(buffers) == 0
    assert buffers.get(1) is None


def test_ids_can_be_reused_after_clear():
    buffers = make_list(1)
    buffers.clear()
    buffers.append(Buffer.create(1, 256, 100))
    assert buffers.ids() == [1]


def test_twenty_buffers_counted():
    buffers = make_list(*range(1, 21))
    assert len(buffers) == 20
    assert sorted(buffers.ids()) == list(range(1, 21))