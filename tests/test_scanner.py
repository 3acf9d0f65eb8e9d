import asyncio

from vitals_monitor.adapter import DeviceHandle
from vitals_monitor.scanner import ScanCoordinator, ScanSnapshot

from .conftest import MATCHING, OTHER


def test_results_are_filtered_by_prefix(adapter) -> None:
    snapshots = []
    coordinator = ScanCoordinator(adapter, on_snapshot=snapshots.append)
    lowercase = DeviceHandle(address="00:80:aa:00:00:01")

    asyncio.run(coordinator.start_scan(5.0))
    adapter.emit_results([MATCHING, OTHER, lowercase])

    assert coordinator.snapshot.devices == (MATCHING, lowercase)
    assert coordinator.snapshot.scanning is True
    for snapshot in snapshots:
        assert all(d.address.upper().startswith("00:80") for d in snapshot.devices)


def test_results_replace_previous_list(adapter) -> None:
    coordinator = ScanCoordinator(adapter)
    second = DeviceHandle(address="00:80:00:00:00:02")

    asyncio.run(coordinator.start_scan(5.0))
    adapter.emit_results([MATCHING, second])
    adapter.emit_results([second])

    assert coordinator.snapshot.devices == (second,)


def test_start_scan_while_scanning_is_noop(adapter) -> None:
    coordinator = ScanCoordinator(adapter)

    async def scenario():
        assert await coordinator.start_scan(5.0) is True
        adapter.emit_results([MATCHING])
        before = coordinator.snapshot
        assert await coordinator.start_scan(5.0) is False
        return before

    before = asyncio.run(scenario())
    assert coordinator.snapshot == before
    assert coordinator.snapshot.devices == (MATCHING,)
    assert adapter.calls.count("start_scan") == 1


def test_scanning_flag_is_mirrored_and_rescan_clears(adapter) -> None:
    coordinator = ScanCoordinator(adapter)

    asyncio.run(coordinator.start_scan(5.0))
    adapter.emit_results([MATCHING])
    adapter.finish_scan()
    assert coordinator.snapshot == ScanSnapshot(devices=(MATCHING,), scanning=False)

    asyncio.run(coordinator.start_scan(5.0))
    assert coordinator.snapshot == ScanSnapshot(devices=(), scanning=True)
    assert adapter.calls.count("start_scan") == 2


def test_scan_failure_leaves_list_empty(adapter, adapter_error) -> None:
    adapter.scan_error = adapter_error
    coordinator = ScanCoordinator(adapter)

    assert asyncio.run(coordinator.start_scan(5.0)) is True
    assert coordinator.snapshot == ScanSnapshot(devices=(), scanning=False)


def test_custom_prefix(adapter) -> None:
    coordinator = ScanCoordinator(adapter, address_prefix="11:22")

    asyncio.run(coordinator.start_scan(5.0))
    adapter.emit_results([MATCHING, OTHER])

    assert coordinator.snapshot.devices == (OTHER,)


def test_unknown_device_display_name() -> None:
    assert DeviceHandle(address="00:80:00:00:00:03").display_name == "Unknown Device"
    assert MATCHING.display_name == "Board"
