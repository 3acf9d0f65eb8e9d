"""Generate mock ECG/PPG frames for development without hardware."""

from __future__ import annotations

import math
import random
from typing import Iterator

from . import config

# (offset within beat in seconds, amplitude, width)
_ECG_WAVES = (
    (0.20, 0.12, 0.025),  # P
    (0.34, -0.10, 0.010),  # Q
    (0.37, 1.00, 0.012),  # R
    (0.40, -0.20, 0.010),  # S
    (0.62, 0.30, 0.040),  # T
)


def _beat_phase(index: int, sample_rate: float, heart_rate_bpm: float) -> float:
    period = 60.0 / heart_rate_bpm
    return (index / sample_rate) % period


def ecg_waveform_generator(
    sample_rate: float = config.SAMPLE_RATE_HZ,
    heart_rate_bpm: float = 72.0,
    baseline: int = 2048,
    gain: float = 1200.0,
    noise_level: float = 8.0,
) -> Iterator[int]:
    """Yield 12-bit unsigned ECG-like readings."""
    index = 0
    while True:
        t = _beat_phase(index, sample_rate, heart_rate_bpm)
        level = sum(
            amplitude * math.exp(-((t - offset) ** 2) / (2 * width**2))
            for offset, amplitude, width in _ECG_WAVES
        )
        value = baseline + level * gain + random.gauss(0, noise_level)
        yield max(0, min(0x0FFF, int(value)))
        index += 1


def ppg_waveform_generator(
    sample_rate: float = config.SAMPLE_RATE_HZ,
    heart_rate_bpm: float = 72.0,
    baseline: int = 1500,
    gain: float = 600.0,
    noise_level: float = 4.0,
) -> Iterator[int]:
    """Yield 16-bit unsigned PPG-like readings (systolic peak plus dicrotic wave)."""
    index = 0
    while True:
        t = _beat_phase(index, sample_rate, heart_rate_bpm)
        systolic = math.exp(-((t - 0.25) ** 2) / (2 * 0.06**2))
        dicrotic = 0.4 * math.exp(-((t - 0.48) ** 2) / (2 * 0.08**2))
        value = baseline + (systolic + dicrotic) * gain + random.gauss(0, noise_level)
        yield max(0, min(0xFFFF, int(value)))
        index += 1


def encode_frame(value: int, length: int = 2, signed: bool = False) -> bytes:
    """Pack a reading into a big-endian frame."""
    return value.to_bytes(length, "big", signed=signed)
