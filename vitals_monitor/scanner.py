"""Scan coordination: run discovery scans and keep the filtered candidate list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from . import config
from .adapter import BleAdapter, DeviceHandle
from .errors import AdapterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanSnapshot:
    """Devices currently matching the address filter plus the scanning flag."""

    devices: Tuple[DeviceHandle, ...] = ()
    scanning: bool = False


SnapshotCallback = Callable[[ScanSnapshot], None]


class ScanCoordinator:
    """Runs adapter scans and publishes prefix-filtered snapshots.

    The snapshot is only ever replaced, never patched, so readers always
    see a consistent list.
    """

    def __init__(
        self,
        adapter: BleAdapter,
        address_prefix: str = config.ADDRESS_PREFIX,
        on_snapshot: Optional[SnapshotCallback] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._adapter = adapter
        self._prefix = address_prefix.upper()
        self._on_snapshot = on_snapshot
        self._log = log or logger
        self._snapshot = ScanSnapshot()
        adapter.add_scan_listener(self._handle_results)
        adapter.add_scanning_listener(self._handle_scanning)

    @property
    def snapshot(self) -> ScanSnapshot:
        return self._snapshot

    @property
    def address_prefix(self) -> str:
        return self._prefix

    def matches(self, device: DeviceHandle) -> bool:
        return device.address.upper().startswith(self._prefix)

    def _publish(self, snapshot: ScanSnapshot) -> None:
        self._snapshot = snapshot
        if self._on_snapshot:
            self._on_snapshot(snapshot)

    async def start_scan(self, timeout: float = config.DEFAULT_SCAN_TIMEOUT) -> bool:
        """Start a scan. Returns False when one is already running."""
        if self._snapshot.scanning:
            self._log.debug("Scan already in progress, ignoring request")
            return False
        self._log.info("Scanning for devices with prefix %s (%.1fs)...", self._prefix, timeout)
        self._publish(ScanSnapshot(devices=(), scanning=True))
        try:
            await self._adapter.start_scan(timeout)
        except AdapterError as exc:
            self._log.warning("Scan failed: %s", exc)
            self._publish(ScanSnapshot(devices=self._snapshot.devices, scanning=False))
        return True

    def _handle_results(self, devices: List[DeviceHandle]) -> None:
        matching = tuple(device for device in devices if self.matches(device))
        if matching != self._snapshot.devices:
            self._log.debug("Scan update: %d of %d device(s) match", len(matching), len(devices))
        self._publish(ScanSnapshot(devices=matching, scanning=self._snapshot.scanning))

    def _handle_scanning(self, scanning: bool) -> None:
        if scanning == self._snapshot.scanning:
            return
        if not scanning:
            self._log.info("Scan finished: %d candidate(s)", len(self._snapshot.devices))
        self._publish(ScanSnapshot(devices=self._snapshot.devices, scanning=scanning))
