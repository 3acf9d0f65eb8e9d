import numpy as np
import pytest

from vitals_monitor.buffers import SampleRingBuffer


def test_snapshot_orders_oldest_to_newest_after_wrap() -> None:
    buf = SampleRingBuffer(capacity=3)
    for position in range(1, 6):
        buf.append(position, position * 10.0)

    positions, values = buf.snapshot()
    assert len(buf) == 3
    np.testing.assert_array_equal(positions, [3, 4, 5])
    np.testing.assert_allclose(values, [30.0, 40.0, 50.0])


def test_snapshot_is_read_only_copy() -> None:
    buf = SampleRingBuffer(capacity=4)
    buf.append(1, 1.5)
    positions, values = buf.snapshot()
    with pytest.raises(ValueError):
        values[0] = 2.0
    buf.append(2, 2.5)
    assert values.tolist() == [1.5]


def test_clear_empties_buffer() -> None:
    buf = SampleRingBuffer(capacity=2)
    buf.append(1, 1.0)
    buf.append(2, 2.0)
    buf.clear()
    positions, values = buf.snapshot()
    assert len(buf) == 0
    assert positions.size == 0 and values.size == 0


def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        SampleRingBuffer(capacity=0)
