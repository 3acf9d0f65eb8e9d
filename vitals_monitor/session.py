"""Connection session: one device, two notification channels, one lifecycle.

The session walks ``IDLE -> CONNECTING -> DISCOVERING -> SUBSCRIBING ->
STREAMING`` and ends in ``DISCONNECTED`` or ``FAILED``. A session is used for
a single connection attempt; the supervisor creates a fresh one per device
selection.

Every adapter call is a suspension point. After each one the session checks
that it is still in the state it was in before awaiting; if a disconnect
(explicit or from the transport) happened in between, the flow stops
without issuing further adapter calls.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from .adapter import (
    BleAdapter,
    ConnectionState,
    ConnectResult,
    ConnectStatus,
    DeviceHandle,
    FrameCallback,
    GattCharacteristic,
    GattService,
)
from .config import CHANNELS, ChannelId, ChannelSpec
from .data_parser import decode, hex_dump
from .errors import (
    AdapterError,
    CharacteristicNotFound,
    ConnectionFailure,
    DisconnectFailure,
    SessionError,
    SubscriptionFailure,
)
from .processing import SampleUpdate, SignalProcessor

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "Idle"
    CONNECTING = "Connecting"
    DISCOVERING = "Discovering"
    SUBSCRIBING = "Subscribing"
    STREAMING = "Streaming"
    DISCONNECTING = "Disconnecting"
    FAILED = "Failed"
    DISCONNECTED = "Disconnected"


ACTIVE_STATES = frozenset(
    {
        SessionState.CONNECTING,
        SessionState.DISCOVERING,
        SessionState.SUBSCRIBING,
        SessionState.STREAMING,
    }
)
TERMINAL_STATES = frozenset({SessionState.FAILED, SessionState.DISCONNECTED})


@dataclass(frozen=True)
class SessionStatus:
    """A state plus the human-readable reason attached to FAILED."""

    state: SessionState
    reason: str = ""

    def __str__(self) -> str:
        if self.reason:
            return f"{self.state.value}({self.reason})"
        return self.state.value


StateCallback = Callable[[SessionStatus], None]
SampleCallback = Callable[[SampleUpdate], None]
ErrorCallback = Callable[[SessionError], None]


def resolve_characteristics(
    services: Iterable[GattService],
    channels: Mapping[ChannelId, ChannelSpec],
) -> Dict[ChannelId, GattCharacteristic]:
    """Find the characteristic of every channel by UUID fragment.

    Matching is case-insensitive substring containment. Raises
    CharacteristicNotFound for the first channel that cannot be resolved."""
    services = list(services)
    resolved: Dict[ChannelId, GattCharacteristic] = {}
    for channel, spec in channels.items():
        service = next(
            (s for s in services if spec.service_fragment.lower() in s.uuid.lower()),
            None,
        )
        if service is None:
            raise CharacteristicNotFound(
                f"service/characteristic not found: service {spec.service_fragment}",
                channel,
            )
        characteristic = next(
            (
                c
                for c in service.characteristics
                if spec.characteristic_fragment.lower() in c.uuid.lower()
            ),
            None,
        )
        if characteristic is None:
            raise CharacteristicNotFound(
                "service/characteristic not found: "
                f"characteristic {spec.characteristic_fragment}",
                channel,
            )
        resolved[channel] = characteristic
    return resolved


class ConnectionSession:
    """Owns one device connection and the signal processors fed by it."""

    def __init__(
        self,
        adapter: BleAdapter,
        on_state: Optional[StateCallback] = None,
        on_sample: Optional[SampleCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        channels: Optional[Mapping[ChannelId, ChannelSpec]] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._adapter = adapter
        self._on_state = on_state
        self._on_sample = on_sample
        self._on_error = on_error
        self._channels = dict(channels or CHANNELS)
        self._log = log or logger
        self._processors = {
            channel: SignalProcessor(channel, spec) for channel, spec in self._channels.items()
        }
        self._status = SessionStatus(SessionState.IDLE)
        self._device: Optional[DeviceHandle] = None
        self._subscriptions: Dict[ChannelId, GattCharacteristic] = {}
        self._unwatch: Optional[Callable[[], None]] = None
        self._released: Optional[asyncio.Event] = None

    # ------------------------------------------------------------ Accessors --
    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def state(self) -> SessionState:
        return self._status.state

    @property
    def device(self) -> Optional[DeviceHandle]:
        return self._device

    @property
    def is_active(self) -> bool:
        return self._status.state in ACTIVE_STATES

    @property
    def active_channels(self) -> List[ChannelId]:
        return list(self._subscriptions)

    def processor(self, channel: ChannelId) -> SignalProcessor:
        return self._processors[channel]

    def snapshot(self, channel: ChannelId) -> Tuple[np.ndarray, np.ndarray]:
        return self._processors[channel].snapshot()

    # -------------------------------------------------------------- Helpers --
    def _transition(self, state: SessionState, reason: str = "") -> None:
        self._status = SessionStatus(state, reason)
        self._log.info("Session %s", self._status)
        if self._on_state:
            self._on_state(self._status)

    def _still(self, state: SessionState) -> bool:
        return self._status.state is state

    def _report(self, error: SessionError) -> None:
        if self._on_error:
            self._on_error(error)

    def _stop_watching(self) -> None:
        unwatch, self._unwatch = self._unwatch, None
        if unwatch is not None:
            unwatch()

    def _frame_handler(self, channel: ChannelId) -> FrameCallback:
        processor = self._processors[channel]
        signed = processor.spec.signed

        def handle(frame: bytes) -> None:
            if channel not in self._subscriptions:
                return
            raw = decode(frame, signed=signed)
            update = processor.ingest(raw)
            self._log.debug(
                "[%s] HEX=%s -> raw: %d, value: %.3f",
                channel.value,
                hex_dump(frame),
                raw,
                update.sample.value,
            )
            if self._on_sample:
                self._on_sample(update)

        return handle

    async def _cancel_subscriptions(self) -> None:
        # Swap first so frames still in flight are dropped by the handlers.
        subscriptions, self._subscriptions = self._subscriptions, {}
        for channel, characteristic in subscriptions.items():
            try:
                await self._adapter.stop_notify(self._device, characteristic)
            except AdapterError:
                self._log.debug("stop_notify failed for %s", channel.value, exc_info=True)

    async def _release_transport(self) -> None:
        try:
            await self._adapter.disconnect(self._device)
        except AdapterError as exc:
            failure = DisconnectFailure(str(exc))
            self._log.warning("Error disconnecting: %s", failure)

    async def _release(self) -> None:
        self._released = asyncio.Event()
        try:
            self._stop_watching()
            await self._cancel_subscriptions()
            await self._release_transport()
        finally:
            self._released.set()

    async def _fail(self, error: SessionError) -> None:
        self._log.error("%s", error)
        # Cleanup runs before FAILED is published so a successor session never
        # races with this one for the transport.
        self._transition(SessionState.DISCONNECTING, str(error))
        await self._release()
        self._transition(SessionState.FAILED, str(error))

    def _handle_connection_state(self, state: ConnectionState) -> None:
        if state is not ConnectionState.DISCONNECTED:
            return
        if self._status.state not in ACTIVE_STATES:
            return
        self._log.info("Device %s disconnected", self._device.address)
        self._subscriptions = {}
        self._stop_watching()
        self._transition(SessionState.DISCONNECTED, "device disconnected")

    # ----------------------------------------------------------- Lifecycle --
    async def connect(self, device: DeviceHandle) -> bool:
        """Run the session up to STREAMING.

        Returns False when the request is rejected or the session was
        disconnected while the flow was pending. Raises a SessionError after
        moving to FAILED."""
        if self._status.state is not SessionState.IDLE:
            self._log.warning(
                "Connect to %s rejected: session is %s", device.address, self._status.state.value
            )
            return False

        self._device = device
        self._log.info("Trying to connect to %s (%s)", device.display_name, device.address)
        self._transition(SessionState.CONNECTING)
        self._unwatch = self._adapter.watch_connection(device, self._handle_connection_state)

        try:
            result = await self._adapter.connect(device, auto_connect=False)
        except AdapterError as exc:
            result = ConnectResult(ConnectStatus.FAILED, str(exc))
        if not self._still(SessionState.CONNECTING):
            if result.ok:
                await self._release_transport()
            return False
        if result.status is ConnectStatus.FAILED:
            error = ConnectionFailure(f"Connection failed: {result.reason}")
            await self._fail(error)
            raise error
        if result.status is ConnectStatus.ALREADY_CONNECTED:
            self._log.warning("Device already connected, continuing")
        else:
            self._log.info("Device connected successfully")

        self._transition(SessionState.DISCOVERING)
        try:
            services = await self._adapter.discover_services(device)
        except AdapterError as exc:
            if not self._still(SessionState.DISCOVERING):
                return False
            error = ConnectionFailure(f"Service discovery failed: {exc}")
            await self._fail(error)
            raise error from exc
        if not self._still(SessionState.DISCOVERING):
            return False
        try:
            resolved = resolve_characteristics(services, self._channels)
        except CharacteristicNotFound as error:
            await self._fail(error)
            raise

        self._transition(SessionState.SUBSCRIBING)
        for channel, characteristic in resolved.items():
            self._subscriptions[channel] = characteristic
            try:
                await self._adapter.start_notify(
                    device, characteristic, self._frame_handler(channel)
                )
            except AdapterError as exc:
                self._subscriptions.pop(channel, None)
                if self._still(SessionState.SUBSCRIBING):
                    failure = SubscriptionFailure(
                        f"Subscribing to {channel.value} failed: {exc}", channel
                    )
                    self._log.warning("%s", failure)
                    self._report(failure)
            if not self._still(SessionState.SUBSCRIBING):
                return False
            if channel in self._subscriptions:
                self._log.info("Subscribed to %s (%s)", channel.value, characteristic.uuid)

        if not self._subscriptions:
            error = SubscriptionFailure("No channel could be subscribed")
            await self._fail(error)
            raise error
        self._transition(SessionState.STREAMING)
        return True

    async def disconnect(self) -> None:
        """Cancel both subscriptions, then release the transport.

        Safe to call repeatedly; errors are logged and never raised. A call
        made while a release is already running waits for it to finish."""
        if self._status.state is SessionState.DISCONNECTING:
            if self._released is not None:
                await self._released.wait()
            return
        if self._status.state not in ACTIVE_STATES:
            return
        self._log.info("Disconnecting device...")
        self._transition(SessionState.DISCONNECTING)
        await self._release()
        self._transition(SessionState.DISCONNECTED)
        self._log.info("Device disconnected.")
