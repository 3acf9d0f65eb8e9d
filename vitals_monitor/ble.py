"""Bluetooth Low Energy adapter built on top of bleak."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .adapter import (
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
from .errors import AdapterError

logger = logging.getLogger(__name__)


class BleakAdapter(BleAdapter):
    """Wraps bleak scanning and connection lifecycle."""

    CONNECT_TIMEOUT_SECONDS = 10.0

    def __init__(self) -> None:
        super().__init__()
        self._scanner: Optional[BleakScanner] = None
        self._scan_task: Optional[asyncio.Task[None]] = None
        self._seen: Dict[str, BLEDevice] = {}
        self._results: Dict[str, DeviceHandle] = {}
        self._clients: Dict[str, BleakClient] = {}
        self._watchers: Dict[str, List[ConnectionCallback]] = {}

    # ------------------------------------------------------------ Scanning --
    def _detection_callback(self, device: BLEDevice, adv: AdvertisementData) -> None:
        address = device.address.upper()
        self._seen[address] = device
        self._results[address] = DeviceHandle(
            address=address,
            name=device.name or adv.local_name or "",
            rssi=adv.rssi,
        )
        self._emit_scan_results(list(self._results.values()))

    async def start_scan(self, timeout: float) -> None:
        if self._scan_task and not self._scan_task.done():
            return
        self._seen.clear()
        self._results.clear()
        self._scanner = BleakScanner(detection_callback=self._detection_callback)
        try:
            await self._scanner.start()
        except (BleakError, OSError) as exc:
            self._scanner = None
            raise AdapterError(f"Scan failed: {exc}") from exc
        self._emit_scanning(True)
        self._scan_task = asyncio.create_task(self._stop_after(timeout))

    async def _stop_after(self, timeout: float) -> None:
        try:
            await asyncio.sleep(timeout)
        finally:
            scanner, self._scanner = self._scanner, None
            if scanner is not None:
                try:
                    await scanner.stop()
                except (BleakError, OSError) as exc:
                    logger.debug("Error stopping scanner: %s", exc)
            self._emit_scanning(False)

    # ---------------------------------------------------------- Connection --
    def _handle_disconnected(self, address: str) -> None:
        self._clients.pop(address, None)
        for callback in list(self._watchers.get(address, [])):
            callback(ConnectionState.DISCONNECTED)

    async def connect(self, device: DeviceHandle, auto_connect: bool = False) -> ConnectResult:
        address = device.address.upper()
        client = self._clients.get(address)
        if client is not None and client.is_connected:
            return ConnectResult(ConnectStatus.ALREADY_CONNECTED)
        # bleak has no auto-reconnect; a dropped link always ends the session.
        target = self._seen.get(address, device.address)
        client = BleakClient(
            target,
            disconnected_callback=lambda _: self._handle_disconnected(address),
            timeout=self.CONNECT_TIMEOUT_SECONDS,
        )
        try:
            await client.connect()
        except (BleakError, asyncio.TimeoutError, OSError) as exc:
            return ConnectResult(ConnectStatus.FAILED, str(exc) or type(exc).__name__)
        self._clients[address] = client
        for callback in list(self._watchers.get(address, [])):
            callback(ConnectionState.CONNECTED)
        return ConnectResult(ConnectStatus.CONNECTED)

    def watch_connection(
        self, device: DeviceHandle, callback: ConnectionCallback
    ) -> Callable[[], None]:
        callbacks = self._watchers.setdefault(device.address.upper(), [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _client_for(self, device: DeviceHandle) -> BleakClient:
        client = self._clients.get(device.address.upper())
        if client is None or not client.is_connected:
            raise AdapterError(f"{device.address} is not connected")
        return client

    async def discover_services(self, device: DeviceHandle) -> List[GattService]:
        client = self._client_for(device)
        services = []
        for service in client.services:
            characteristics = tuple(
                GattCharacteristic(uuid=char.uuid, service_uuid=service.uuid, handle=char.handle)
                for char in service.characteristics
            )
            services.append(GattService(uuid=service.uuid, characteristics=characteristics))
        return services

    async def start_notify(
        self,
        device: DeviceHandle,
        characteristic: GattCharacteristic,
        callback: FrameCallback,
    ) -> None:
        client = self._client_for(device)
        specifier = characteristic.handle if characteristic.handle is not None else characteristic.uuid
        try:
            await client.start_notify(specifier, lambda _, data: callback(bytes(data)))
        except (BleakError, ValueError, OSError) as exc:
            raise AdapterError(f"start_notify {characteristic.uuid} failed: {exc}") from exc

    async def stop_notify(self, device: DeviceHandle, characteristic: GattCharacteristic) -> None:
        client = self._clients.get(device.address.upper())
        if client is None or not client.is_connected:
            return
        specifier = characteristic.handle if characteristic.handle is not None else characteristic.uuid
        try:
            await client.stop_notify(specifier)
        except (BleakError, ValueError, KeyError, OSError) as exc:
            raise AdapterError(f"stop_notify {characteristic.uuid} failed: {exc}") from exc

    async def disconnect(self, device: DeviceHandle) -> None:
        client = self._clients.pop(device.address.upper(), None)
        if client is None:
            return
        try:
            await client.disconnect()
        except (BleakError, OSError) as exc:
            raise AdapterError(f"disconnect failed: {exc}") from exc
