"""Drop-in BLE adapter that advertises fake devices and emits simulated frames."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterator, List, Optional

from . import config
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
from .config import ChannelId
from .errors import AdapterError
from .simulator import ecg_waveform_generator, encode_frame, ppg_waveform_generator

logger = logging.getLogger(__name__)

BASE_UUID = "-0000-1000-8000-00805f9b34fb"

SIMULATED_DEVICES = (
    DeviceHandle(address="00:80:E1:26:0A:51", name="VITALS-SIM", rssi=-48),
    DeviceHandle(address="00:80:E1:26:0A:52", name="", rssi=-71),
    DeviceHandle(address="11:22:33:44:55:66", name="Headphones", rssi=-60),
)


def _full_uuid(fragment: str) -> str:
    return f"{fragment}{BASE_UUID}"


def simulated_services() -> List[GattService]:
    """GATT table exposing both channel characteristics."""
    services = []
    for spec in config.CHANNELS.values():
        service_uuid = _full_uuid(spec.service_fragment)
        characteristic = GattCharacteristic(
            uuid=_full_uuid(spec.characteristic_fragment), service_uuid=service_uuid
        )
        services.append(GattService(uuid=service_uuid, characteristics=(characteristic,)))
    return services


class SimulatedAdapter(BleAdapter):
    """Mimic the BleakAdapter API using synthetic signals."""

    def __init__(
        self,
        devices=SIMULATED_DEVICES,
        sample_rate: float = config.SAMPLE_RATE_HZ,
        scan_interval: float = 0.5,
    ) -> None:
        super().__init__()
        self._devices = tuple(devices)
        self._sample_rate = sample_rate
        self._scan_interval = scan_interval
        self._scan_task: Optional[asyncio.Task[None]] = None
        self._connected: set[str] = set()
        self._watchers: Dict[str, List[ConnectionCallback]] = {}
        self._streams: Dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------ Scanning --
    async def start_scan(self, timeout: float) -> None:
        if self._scan_task and not self._scan_task.done():
            return
        self._emit_scanning(True)
        self._scan_task = asyncio.create_task(self._run_scan(timeout))

    async def _run_scan(self, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        seen: List[DeviceHandle] = []
        try:
            for device in self._devices:
                if loop.time() >= deadline:
                    break
                await asyncio.sleep(min(self._scan_interval, max(0.0, deadline - loop.time())))
                seen.append(device)
                self._emit_scan_results(seen)
            await asyncio.sleep(max(0.0, deadline - loop.time()))
        finally:
            self._emit_scanning(False)

    # ---------------------------------------------------------- Connection --
    async def connect(self, device: DeviceHandle, auto_connect: bool = False) -> ConnectResult:
        if device.address in self._connected:
            return ConnectResult(ConnectStatus.ALREADY_CONNECTED)
        if device not in self._devices:
            return ConnectResult(ConnectStatus.FAILED, f"{device.address} not in range")
        await asyncio.sleep(0.1)
        self._connected.add(device.address)
        self._notify(device, ConnectionState.CONNECTED)
        return ConnectResult(ConnectStatus.CONNECTED)

    def _notify(self, device: DeviceHandle, state: ConnectionState) -> None:
        for callback in list(self._watchers.get(device.address, [])):
            callback(state)

    def watch_connection(
        self, device: DeviceHandle, callback: ConnectionCallback
    ) -> Callable[[], None]:
        callbacks = self._watchers.setdefault(device.address, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def discover_services(self, device: DeviceHandle) -> List[GattService]:
        if device.address not in self._connected:
            raise AdapterError(f"{device.address} is not connected")
        return simulated_services()

    def _generator_for(self, characteristic: GattCharacteristic) -> Iterator[int]:
        ecg = config.CHANNELS[ChannelId.ECG]
        if ecg.characteristic_fragment in characteristic.uuid.lower():
            return ecg_waveform_generator(self._sample_rate)
        return ppg_waveform_generator(self._sample_rate)

    async def start_notify(
        self,
        device: DeviceHandle,
        characteristic: GattCharacteristic,
        callback: FrameCallback,
    ) -> None:
        if device.address not in self._connected:
            raise AdapterError(f"{device.address} is not connected")
        key = f"{device.address}/{characteristic.uuid}"
        if key in self._streams:
            return
        generator = self._generator_for(characteristic)
        self._streams[key] = asyncio.create_task(self._stream(generator, callback))

    async def _stream(self, generator: Iterator[int], callback: FrameCallback) -> None:
        period = 1.0 / self._sample_rate
        while True:
            callback(encode_frame(next(generator)))
            await asyncio.sleep(period)

    async def stop_notify(self, device: DeviceHandle, characteristic: GattCharacteristic) -> None:
        task = self._streams.pop(f"{device.address}/{characteristic.uuid}", None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def disconnect(self, device: DeviceHandle) -> None:
        if device.address not in self._connected:
            return
        for key in [k for k in self._streams if k.startswith(f"{device.address}/")]:
            self._streams.pop(key).cancel()
        self._connected.discard(device.address)
        self._notify(device, ConnectionState.DISCONNECTED)

    def drop_link(self, device: DeviceHandle) -> None:
        """Simulate the peripheral going out of range."""
        logger.info("Simulating link loss for %s", device.address)
        for key in [k for k in self._streams if k.startswith(f"{device.address}/")]:
            self._streams.pop(key).cancel()
        self._connected.discard(device.address)
        self._notify(device, ConnectionState.DISCONNECTED)
