"""Utilities for decoding raw BLE notification frames into integers."""

from __future__ import annotations

from typing import Sequence, Union

Frame = Union[bytes, bytearray, Sequence[int]]


def decode(frame: Frame, signed: bool = False) -> int:
    """Combine big-endian bytes into an integer.

    An empty frame decodes to 0. When ``signed`` is set the value is read as
    two's complement over the full frame width."""
    if not frame:
        return 0
    value = 0
    for byte in frame:
        value = (value << 8) | (byte & 0xFF)
    if signed:
        bits = len(frame) * 8
        sign_bit = 1 << (bits - 1)
        if value & sign_bit:
            value -= 1 << bits
    return value


def hex_dump(frame: Frame) -> str:
    """Render a frame as contiguous lowercase hex, e.g. ``0a1b``."""
    return "".join(f"{byte & 0xFF:02x}" for byte in frame)
