"""Protocol interfaces and listener base class for dependency injection."""

from __future__ import annotations

from typing import Callable, Protocol

import numpy as np

from .models import ConnectionState, DetectedIntent, PcmPacket, SessionEvent

FrameHandler = Callable[[np.ndarray], None]
EventHandler = Callable[[SessionEvent], None]


class AudioInputDevice(Protocol):
    """Microphone-like source delivering fixed-size float frames."""

    @property
    def sample_rate(self) -> int:
        """Effective sample rate negotiated with the device."""

    def acquire(self) -> None:
        """
        Open the device without delivering frames yet.

        Raises:
            DeviceAcquisitionError: When permission is denied or no device exists.
        """

    def start(self, on_frame: FrameHandler) -> None:
        """Begin delivering frames to ``on_frame`` from the device thread."""

    def release(self) -> None:
        """Stop and close the device. Safe to call repeatedly or before acquire."""


class LiveSession(Protocol):
    """Bidirectional session with the remote speech service."""

    @property
    def is_open(self) -> bool:
        """True once the handshake completed and until the transport closes."""

    def open(self, on_event: EventHandler) -> None:
        """
        Connect and block until the handshake completes.

        Raises:
            HandshakeError: When the remote session cannot be opened.
        """

    def send_audio(self, packet: PcmPacket) -> None:
        """Queue a packet; dropped while the transport is not open."""

    def close(self) -> None:
        """Close the transport. Idempotent."""


class SessionListener:
    """
    Receives notifications from :class:`~intent_monitor.session.LiveSessionManager`.

    Subclasses override only the channels they care about. Volume updates
    arrive on the audio thread, everything else on the network thread.
    """

    def on_volume(self, volume: float) -> None:
        pass

    def on_transcript(self, text: str) -> None:
        pass

    def on_intent(self, intent: DetectedIntent) -> None:
        pass

    def on_error(self, error: Exception) -> None:
        pass

    def on_disconnect(self) -> None:
        pass

    def on_state_change(self, state: ConnectionState) -> None:
        pass

    def on_model_audio(self, samples: np.ndarray, sample_rate: int) -> None:
        pass
