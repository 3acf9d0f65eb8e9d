"""
Vitals monitor package for streaming ECG/PPG frames from BLE sensor boards.

The package exposes high-level interfaces used by the GUI client to scan for
Bluetooth devices, manage the connection session, and turn incoming
notification frames into bounded per-channel traces.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
