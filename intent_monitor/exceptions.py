"""Custom exceptions for the monitor."""

from __future__ import annotations


class MonitorError(RuntimeError):
    """Base class for failures surfaced by the live session."""


class DeviceAcquisitionError(MonitorError):
    """Raised when the microphone cannot be opened (permission denied, no device)."""


class HandshakeError(MonitorError):
    """Raised when the remote session fails to open."""


class TransportError(MonitorError):
    """Raised or reported when the connection fails after the session is open."""


class DecodeError(MonitorError, ValueError):
    """Raised for a malformed inbound payload; recoverable, dropped per message."""
