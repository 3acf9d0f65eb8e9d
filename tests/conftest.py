from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from vitals_monitor.adapter import (
    BleAdapter,
    ConnectionCallback,
    ConnectionState,
    ConnectResult,
    ConnectStatus,
    DeviceHandle,
    FrameCallback,
    GattCharacteristic,
    GattService,
)
from vitals_monitor.errors import AdapterError
from vitals_monitor.sim_device import simulated_services

MATCHING = DeviceHandle(address="00:80:AA:BB:CC:DD", name="Board")
OTHER = DeviceHandle(address="11:22:33:44:55:66", name="Speaker")


class FakeAdapter(BleAdapter):
    """In-memory adapter driven by the test."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[str] = []
        self.connect_result = ConnectResult(ConnectStatus.CONNECTED)
        self.connect_gate: Optional[asyncio.Event] = None
        self.discover_gate: Optional[asyncio.Event] = None
        self.notify_gate: Optional[asyncio.Event] = None
        self.disconnect_gate: Optional[asyncio.Event] = None
        self.services: List[GattService] = simulated_services()
        self.scan_error: Optional[Exception] = None
        self.notify_errors: Dict[str, Exception] = {}
        self.disconnect_error: Optional[Exception] = None
        self.handlers: Dict[str, FrameCallback] = {}
        self.watchers: List[ConnectionCallback] = []

    async def start_scan(self, timeout: float) -> None:
        self.calls.append("start_scan")
        if self.scan_error:
            raise self.scan_error
        self._emit_scanning(True)

    def emit_results(self, devices: List[DeviceHandle]) -> None:
        self._emit_scan_results(devices)

    def finish_scan(self) -> None:
        self._emit_scanning(False)

    async def connect(self, device: DeviceHandle, auto_connect: bool = False) -> ConnectResult:
        self.calls.append("connect")
        assert auto_connect is False
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        return self.connect_result

    def watch_connection(
        self, device: DeviceHandle, callback: ConnectionCallback
    ) -> Callable[[], None]:
        self.watchers.append(callback)

        def unsubscribe() -> None:
            if callback in self.watchers:
                self.watchers.remove(callback)

        return unsubscribe

    def drop_link(self) -> None:
        for callback in list(self.watchers):
            callback(ConnectionState.DISCONNECTED)

    async def discover_services(self, device: DeviceHandle) -> List[GattService]:
        self.calls.append("discover_services")
        if self.discover_gate is not None:
            await self.discover_gate.wait()
        return self.services

    def _fragment(self, characteristic: GattCharacteristic) -> str:
        return characteristic.uuid.lower()[:8]

    async def start_notify(
        self,
        device: DeviceHandle,
        characteristic: GattCharacteristic,
        callback: FrameCallback,
    ) -> None:
        fragment = self._fragment(characteristic)
        self.calls.append(f"start_notify:{fragment}")
        if self.notify_gate is not None:
            await self.notify_gate.wait()
        if fragment in self.notify_errors:
            raise self.notify_errors[fragment]
        self.handlers[fragment] = callback

    def push(self, fragment: str, frame: bytes) -> None:
        self.handlers[fragment](frame)

    async def stop_notify(self, device: DeviceHandle, characteristic: GattCharacteristic) -> None:
        fragment = self._fragment(characteristic)
        self.calls.append(f"stop_notify:{fragment}")
        self.handlers.pop(fragment, None)

    async def disconnect(self, device: DeviceHandle) -> None:
        self.calls.append("disconnect")
        if self.disconnect_gate is not None:
            await self.disconnect_gate.wait()
        if self.disconnect_error:
            raise self.disconnect_error
        self.drop_link()


def services_without(fragment: str) -> List[GattService]:
    return [s for s in simulated_services() if fragment not in s.uuid]


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def adapter_error() -> AdapterError:
    return AdapterError("gatt error 133")
