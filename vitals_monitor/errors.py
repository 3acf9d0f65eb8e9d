"""Exception types raised across the BLE session boundary."""

from __future__ import annotations

from typing import Optional

from .config import ChannelId


class AdapterError(Exception):
    """Signals that the BLE adapter could not complete a request."""


class SessionError(Exception):
    """Base class for failures surfaced by a connection session."""


class ConnectionFailure(SessionError):
    """The transport connection could not be established."""


class CharacteristicNotFound(SessionError):
    """A required service/characteristic pair is missing on the device."""

    def __init__(self, message: str, channel: Optional[ChannelId] = None) -> None:
        super().__init__(message)
        self.channel = channel


class SubscriptionFailure(SessionError):
    """Enabling notifications on a channel failed."""

    def __init__(self, message: str, channel: Optional[ChannelId] = None) -> None:
        super().__init__(message)
        self.channel = channel


class DisconnectFailure(SessionError):
    """Tearing the transport down failed. Only ever logged."""
