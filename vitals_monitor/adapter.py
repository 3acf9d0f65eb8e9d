"""Abstract BLE adapter the session and scan layers are written against."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

UNKNOWN_DEVICE_NAME = "Unknown Device"


@dataclass(frozen=True)
class DeviceHandle:
    """Snapshot of a BLE device discovered during a scan."""

    address: str
    name: str = ""
    rssi: Optional[int] = field(default=None, compare=False)

    @property
    def display_name(self) -> str:
        return self.name or UNKNOWN_DEVICE_NAME


@dataclass(frozen=True)
class GattCharacteristic:
    uuid: str
    service_uuid: str = ""
    handle: Optional[int] = None


@dataclass(frozen=True)
class GattService:
    uuid: str
    characteristics: Sequence[GattCharacteristic] = ()


class ConnectStatus(Enum):
    CONNECTED = "connected"
    ALREADY_CONNECTED = "already_connected"
    FAILED = "failed"


@dataclass(frozen=True)
class ConnectResult:
    status: ConnectStatus
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is not ConnectStatus.FAILED


class ConnectionState(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


ScanCallback = Callable[[List[DeviceHandle]], None]
ScanningCallback = Callable[[bool], None]
ConnectionCallback = Callable[[ConnectionState], None]
FrameCallback = Callable[[bytes], None]


class BleAdapter(ABC):
    """Capability set the core needs from a BLE stack.

    Listener callbacks are invoked on the event loop thread. Failing requests
    raise :class:`~vitals_monitor.errors.AdapterError`, except ``connect``
    which reports failures through :class:`ConnectResult`."""

    def __init__(self) -> None:
        self._scan_listeners: List[ScanCallback] = []
        self._scanning_listeners: List[ScanningCallback] = []

    def add_scan_listener(self, callback: ScanCallback) -> None:
        """Receive the full list of devices seen so far on every scan update."""
        self._scan_listeners.append(callback)

    def add_scanning_listener(self, callback: ScanningCallback) -> None:
        """Receive the adapter's scanning flag whenever it changes."""
        self._scanning_listeners.append(callback)

    def _emit_scan_results(self, devices: List[DeviceHandle]) -> None:
        for callback in list(self._scan_listeners):
            callback(list(devices))

    def _emit_scanning(self, scanning: bool) -> None:
        for callback in list(self._scanning_listeners):
            callback(scanning)

    @abstractmethod
    async def start_scan(self, timeout: float) -> None:
        """Start a scan that stops by itself after ``timeout`` seconds."""

    @abstractmethod
    async def connect(self, device: DeviceHandle, auto_connect: bool = False) -> ConnectResult:
        """Open a transport connection to ``device``."""

    @abstractmethod
    def watch_connection(
        self, device: DeviceHandle, callback: ConnectionCallback
    ) -> Callable[[], None]:
        """Register for connection-state changes; returns an unsubscribe function."""

    @abstractmethod
    async def discover_services(self, device: DeviceHandle) -> List[GattService]:
        """Return the GATT services of a connected device."""

    @abstractmethod
    async def start_notify(
        self,
        device: DeviceHandle,
        characteristic: GattCharacteristic,
        callback: FrameCallback,
    ) -> None:
        """Enable notifications and route every received frame to ``callback``."""

    @abstractmethod
    async def stop_notify(self, device: DeviceHandle, characteristic: GattCharacteristic) -> None:
        """Disable notifications on ``characteristic``."""

    @abstractmethod
    async def disconnect(self, device: DeviceHandle) -> None:
        """Release the transport connection."""
