"""Per-channel signal processing: smoothing, scaling and sweep windowing."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple

import numpy as np

from .buffers import SampleRingBuffer
from .config import CHANNELS, ChannelId, ChannelSpec

EMPTY_BOUNDS = (0.0, 100.0)


@dataclass(frozen=True)
class Sample:
    """One point of a channel trace."""

    position: int
    value: float


@dataclass(frozen=True)
class SampleUpdate:
    """Append event for the presentation layer.

    ``reset`` is set when the window wrapped around and was cleared before
    ``sample`` was appended. Sweeps after the first run from 0 to max, so
    the append at max evicts position 0; consumers mirroring these events
    must cap their copy at max points too."""

    channel: ChannelId
    sample: Sample
    reset: bool = False


class SignalProcessor:
    """Turn raw decoded readings of one channel into a sweeping trace."""

    def __init__(self, channel: ChannelId, spec: Optional[ChannelSpec] = None) -> None:
        self.channel = channel
        self.spec = spec or CHANNELS[channel]
        self._counter = 0
        self._window: Optional[Deque[float]] = (
            deque(maxlen=self.spec.smoothing_window)
            if self.spec.smoothing_window
            else None
        )
        self._buffer = SampleRingBuffer(self.spec.max_position)

    @property
    def counter(self) -> int:
        return self._counter

    def __len__(self) -> int:
        return len(self._buffer)

    def _shape(self, raw: int) -> float:
        if self._window is None:
            return raw * self.spec.scale
        self._window.append(float(raw))
        return sum(self._window) / len(self._window) * self.spec.scale

    def ingest(self, raw: int) -> SampleUpdate:
        value = self._shape(raw)
        self._counter += 1
        reset = False
        if self._counter > self.spec.max_position:
            self._counter = 0
            self._buffer.clear()
            reset = True
        sample = Sample(self._counter, value)
        self._buffer.append(sample.position, sample.value)
        return SampleUpdate(self.channel, sample, reset)

    def snapshot(self) -> Tuple[np.ndarray, np.ndarray]:
        """Read-only (positions, values) of the visible trace."""
        return self._buffer.snapshot()

    def bounds(self) -> Tuple[float, float]:
        """Min and max of the visible values, for axis scaling."""
        _, values = self._buffer.snapshot()
        if values.size == 0:
            return EMPTY_BOUNDS
        return float(values.min()), float(values.max())
