"""High-level supervisor composing scanning with the connection session."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import numpy as np

from . import config
from .adapter import BleAdapter, DeviceHandle
from .config import ChannelId
from .errors import SessionError
from .processing import EMPTY_BOUNDS, SampleUpdate
from .scanner import ScanCoordinator, ScanSnapshot
from .session import TERMINAL_STATES, ConnectionSession, SessionState, SessionStatus

logger = logging.getLogger(__name__)


SnapshotCallback = Callable[[ScanSnapshot], None]
StateCallback = Callable[[SessionStatus], None]
SampleCallback = Callable[[SampleUpdate], None]
ErrorCallback = Callable[[str], None]

_EMPTY = np.zeros(0)
_EMPTY.flags.writeable = False


@dataclass
class SessionSupervisor:
    """Manage BLE lifecycle: scanning, device selection and streaming."""

    adapter: BleAdapter
    on_snapshot: SnapshotCallback = lambda snapshot: None
    on_state: StateCallback = lambda status: None
    on_sample: SampleCallback = lambda update: None
    on_error: ErrorCallback = lambda message: None
    address_prefix: str = config.ADDRESS_PREFIX
    log: logging.Logger = field(default=logger)

    scanner: ScanCoordinator = field(init=False)
    _session: Optional[ConnectionSession] = field(init=False, default=None)
    _last_status: SessionStatus = field(
        init=False, default_factory=lambda: SessionStatus(SessionState.IDLE)
    )

    def __post_init__(self) -> None:
        self.scanner = ScanCoordinator(
            self.adapter,
            address_prefix=self.address_prefix,
            on_snapshot=self.on_snapshot,
            log=self.log.getChild("scan"),
        )

    # ------------------------------------------------------------ Accessors --
    @property
    def snapshot(self) -> ScanSnapshot:
        return self.scanner.snapshot

    @property
    def status(self) -> SessionStatus:
        return self._last_status

    @property
    def state(self) -> SessionState:
        return self._last_status.state

    @property
    def session(self) -> Optional[ConnectionSession]:
        return self._session

    @property
    def connected(self) -> bool:
        return self._session is not None and self._session.is_active

    def channel_snapshot(self, channel: ChannelId) -> Tuple[np.ndarray, np.ndarray]:
        if self._session is None:
            return _EMPTY, _EMPTY
        return self._session.snapshot(channel)

    def channel_bounds(self, channel: ChannelId) -> Tuple[float, float]:
        if self._session is None:
            return EMPTY_BOUNDS
        return self._session.processor(channel).bounds()

    # -------------------------------------------------------------- Actions --
    async def start_scan(self, timeout: float = config.DEFAULT_SCAN_TIMEOUT) -> bool:
        return await self.scanner.start_scan(timeout)

    async def select_device(self, device: DeviceHandle) -> bool:
        """Connect to ``device``. Rejected while another session is active."""
        if self._session is not None:
            self.log.warning(
                "Ignoring selection of %s: a connection is already active", device.address
            )
            return False
        session = ConnectionSession(
            self.adapter,
            on_state=lambda status: self._handle_state(session, status),
            on_sample=self.on_sample,
            on_error=self._handle_channel_error,
            log=self.log.getChild("session"),
        )
        self._session = session
        try:
            return await session.connect(device)
        except SessionError as exc:
            self.on_error(str(exc))
            return False

    async def teardown(self) -> None:
        """Disconnect the active session, if any, and return to idle.

        Concurrent calls all wait for the same disconnect; only the first one
        to resume reports IDLE."""
        session = self._session
        if session is None:
            return
        await session.disconnect()
        if self._session is session:
            self._session = None
        elif self._session is not None or self._last_status.state is SessionState.IDLE:
            return
        self._last_status = SessionStatus(SessionState.IDLE)
        self.on_state(self._last_status)

    # ------------------------------------------------------------ Callbacks --
    def _handle_state(self, session: ConnectionSession, status: SessionStatus) -> None:
        if session is not self._session:
            self.log.debug("Ignoring %s from a replaced session", status)
            return
        self._last_status = status
        if status.state in TERMINAL_STATES:
            self._session = None
        self.on_state(status)

    def _handle_channel_error(self, error: SessionError) -> None:
        self.on_error(str(error))
