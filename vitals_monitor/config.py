"""Central configuration for the vitals monitor app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

ADDRESS_PREFIX = "00:80"
DEFAULT_SCAN_TIMEOUT = 5.0
SAMPLE_RATE_HZ = 100  # simulator frame rate per channel
PLOT_REFRESH_MS = 50


class ChannelId(Enum):
    ECG = "ECG"
    PPG = "PPG"


@dataclass(frozen=True)
class ChannelSpec:
    """Where a channel lives on the device and how its samples are shaped."""

    service_fragment: str
    characteristic_fragment: str
    max_position: int
    smoothing_window: Optional[int] = None
    scale: float = 1.0
    signed: bool = False


CHANNELS = {
    ChannelId.ECG: ChannelSpec(
        service_fragment="0000aa20",
        characteristic_fragment="0000aa21",
        max_position=1000,
        smoothing_window=3,
    ),
    ChannelId.PPG: ChannelSpec(
        service_fragment="0000aa00",
        characteristic_fragment="0000aa03",
        max_position=100,
        scale=0.002,
    ),
}
