"""Data buffers holding the visible trace of one channel."""

from __future__ import annotations

from typing import Tuple

import numpy as np


class SampleRingBuffer:
    """Maintain a fixed-size rolling buffer of (position, value) points."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._positions = np.zeros(capacity, dtype=np.int64)
        self._values = np.zeros(capacity, dtype=np.float64)
        self._index = 0
        self._filled = False

    def __len__(self) -> int:
        return self.capacity if self._filled else self._index

    def append(self, position: int, value: float) -> None:
        self._positions[self._index] = position
        self._values[self._index] = value
        self._index = (self._index + 1) % self.capacity
        if self._index == 0:
            self._filled = True

    def snapshot(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return copies of positions and values ordered from oldest to newest."""
        if not self._filled:
            positions = self._positions[: self._index].copy()
            values = self._values[: self._index].copy()
        else:
            idx = self._index
            positions = np.concatenate((self._positions[idx:], self._positions[:idx]))
            values = np.concatenate((self._values[idx:], self._values[:idx]))
        positions.flags.writeable = False
        values.flags.writeable = False
        return positions, values

    def clear(self) -> None:
        self._positions.fill(0)
        self._values.fill(0)
        self._index = 0
        self._filled = False
