import numpy as np
import pytest

from ctrkit.buffer import GeneralBuffer, print_buffer
from ctrkit.common import IllegalCallError, NotInitializedError, OutOfBoundError


def _filled(values, dtype=np.float32):
    buf = GeneralBuffer(dtype)
    buf.reserve(len(values))
    buf.init(0)
    buf.view()[:] = values
    return buf


def test_reserve_returns_previous_offset():
    buf = GeneralBuffer()
    assert buf.reserve(3) == 0
    assert buf.reserve(5) == 3
    assert buf.num_elements == 8


def test_init_allocates_zeros():
    buf = GeneralBuffer(np.int64)
    buf.reserve(6)
    assert not buf.initialized
    buf.init(2)
    assert buf.initialized
    assert buf.device_id == 2
    data = buf.view()
    assert data.dtype == np.int64
    assert data.tolist() == [0] * 6


def test_size_in_bytes():
    buf = GeneralBuffer(np.uint32, 10, 0)
    assert buf.size == buf.num_elements * np.dtype(np.uint32).itemsize


def test_constructor_with_device_initializes():
    buf = GeneralBuffer(np.float32, 4, 1)
    assert buf.initialized
    assert buf.device_id == 1
    assert len(buf.view()) == 4


def test_device_id_before_init():
    assert GeneralBuffer().device_id == -1


def test_init_twice_raises():
    buf = GeneralBuffer(np.float32, 2, 0)
    with pytest.raises(IllegalCallError):
        buf.init(0)


def test_reserve_after_init_raises():
    buf = GeneralBuffer(np.float32, 2, 0)
    with pytest.raises(IllegalCallError):
        buf.reserve(1)


def test_view_before_init_raises():
    buf = GeneralBuffer()
    buf.reserve(3)
    with pytest.raises(NotInitializedError):
        buf.view(0)


def test_view_out_of_range_raises():
    buf = GeneralBuffer(np.float32, 3, 0)
    with pytest.raises(OutOfBoundError):
        buf.view(2, 5)


def test_view_shares_memory():
    buf = GeneralBuffer(np.float32, 5, 0)
    buf.view(2, 2)[:] = [7.0, 8.0]
    assert buf.view().tolist() == [0.0, 0.0, 7.0, 8.0, 0.0]


def test_reset_sync_zeros_data():
    buf = _filled([1.0, 2.0, 3.0])
    buf.reset_sync()
    assert buf.view().tolist() == [0.0, 0.0, 0.0]


def test_reset_sync_before_init_raises():
    with pytest.raises(IllegalCallError):
        GeneralBuffer().reset_sync()


def test_unsupported_dtype():
    with pytest.raises(TypeError):
        GeneralBuffer(np.float64)


def test_print_buffer_positive_range(capsys):
    buf = _filled([1.5, 2.0, 3.0, 4.0])
    assert print_buffer(buf, 1, 3) is True
    out = capsys.readouterr().out
    assert out == "Buffer: 4\nbegin: 1 end: 3\n2,3,\n"


def test_print_buffer_negative_range_matches_positive(capsys):
    buf = _filled([1, 2, 3, 4], np.int64)
    assert print_buffer(buf, -3, -1) is True
    negative = capsys.readouterr().out
    assert print_buffer(buf, 1, 3) is True
    positive = capsys.readouterr().out
    assert negative == positive


@pytest.mark.parametrize("begin,end", [(2, 2), (0, 5), (-5, -1), (3, 1)])
def test_print_buffer_invalid_range(capsys, begin, end):
    buf = _filled([1.0, 2.0, 3.0, 4.0])
    assert print_buffer(buf, begin, end) is False
    assert capsys.readouterr().out == ""