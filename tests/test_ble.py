import asyncio
from types import SimpleNamespace

import pytest

from vitals_monitor import ble
from vitals_monitor.ble import BleakAdapter


class FakeScanner:
    instances = []

    def __init__(self, detection_callback) -> None:
        self.detection_callback = detection_callback
        FakeScanner.instances.append(self)

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    def advertise(self, address: str, name: str = "") -> None:
        self.detection_callback(
            SimpleNamespace(address=address, name=name),
            SimpleNamespace(local_name=None, rssi=-60),
        )


@pytest.fixture
def scanner_cls(monkeypatch):
    FakeScanner.instances = []
    monkeypatch.setattr(ble, "BleakScanner", FakeScanner)
    return FakeScanner


def test_new_scan_forgets_devices_from_previous_scan(scanner_cls) -> None:
    adapter = BleakAdapter()
    batches = []
    adapter.add_scan_listener(batches.append)

    async def scenario():
        await adapter.start_scan(0.01)
        scanner_cls.instances[-1].advertise("00:80:aa:bb:cc:01", "first")
        await asyncio.sleep(0.05)
        await adapter.start_scan(0.01)
        scanner_cls.instances[-1].advertise("00:80:aa:bb:cc:02")
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert [device.address for device in batches[-1]] == ["00:80:AA:BB:CC:02"]
    assert list(adapter._seen) == ["00:80:AA:BB:CC:02"]
