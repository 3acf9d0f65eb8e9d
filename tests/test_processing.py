import pytest

from vitals_monitor.config import CHANNELS, ChannelId
from vitals_monitor.processing import EMPTY_BOUNDS, SignalProcessor


def test_ppg_value_is_scaled_raw_independent_of_history() -> None:
    proc = SignalProcessor(ChannelId.PPG)
    for raw in (500, 0, 1234, 65535, 7):
        update = proc.ingest(raw)
        assert update.sample.value == pytest.approx(raw * 0.002)


def test_ecg_trailing_mean_without_left_padding() -> None:
    proc = SignalProcessor(ChannelId.ECG)
    values = [proc.ingest(raw).sample.value for raw in (10, 20, 30, 40)]
    assert values == pytest.approx([10.0, 15.0, 20.0, 30.0])


def test_positions_start_at_one_and_increase() -> None:
    proc = SignalProcessor(ChannelId.ECG)
    positions = [proc.ingest(1).sample.position for _ in range(5)]
    assert positions == [1, 2, 3, 4, 5]


def test_max_samples_fill_window_without_reset() -> None:
    proc = SignalProcessor(ChannelId.PPG)
    limit = CHANNELS[ChannelId.PPG].max_position
    updates = [proc.ingest(i) for i in range(limit)]

    assert proc.counter == limit
    assert len(proc) == limit
    assert not any(update.reset for update in updates)


def test_wraparound_clears_window() -> None:
    proc = SignalProcessor(ChannelId.PPG)
    limit = CHANNELS[ChannelId.PPG].max_position
    for i in range(limit):
        proc.ingest(i)
    update = proc.ingest(42)

    assert update.reset is True
    assert update.sample.position == 0
    assert proc.counter == 0
    positions, values = proc.snapshot()
    assert positions.tolist() == [0]
    assert values.tolist() == pytest.approx([42 * 0.002])


def test_ecg_wraparound_uses_its_own_window_size() -> None:
    proc = SignalProcessor(ChannelId.ECG)
    limit = CHANNELS[ChannelId.ECG].max_position
    assert limit == 1000
    for _ in range(limit):
        proc.ingest(5)
    assert proc.counter == limit and len(proc) == limit
    assert proc.ingest(5).reset is True
    assert len(proc) == 1


def test_visible_sequence_stays_bounded_across_cycles() -> None:
    proc = SignalProcessor(ChannelId.PPG)
    limit = CHANNELS[ChannelId.PPG].max_position
    for i in range(limit * 5 + 17):
        proc.ingest(i)
        assert len(proc) <= limit
        assert 0 <= proc.counter <= limit


def test_bounds() -> None:
    proc = SignalProcessor(ChannelId.ECG)
    assert proc.bounds() == EMPTY_BOUNDS
    for raw in (10, 40, 10):
        proc.ingest(raw)
    assert proc.bounds() == pytest.approx((10.0, 25.0))


def test_later_sweeps_evict_position_zero_at_max() -> None:
    proc = SignalProcessor(ChannelId.PPG)
    limit = CHANNELS[ChannelId.PPG].max_position
    for i in range(limit):
        proc.ingest(i)

    updates = [proc.ingest(i) for i in range(limit + 1)]

    assert [u.sample.position for u in updates] == list(range(limit + 1))
    assert proc.counter == limit
    assert len(proc) == limit
    positions, _ = proc.snapshot()
    assert positions[0] == 1
    assert positions[-1] == limit
