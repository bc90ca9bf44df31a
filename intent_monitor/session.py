"""Lifecycle controller for one live monitoring session."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import List, Optional

from .capture import CapturePipeline
from .config import AppConfig
from .exceptions import DeviceAcquisitionError, HandshakeError, TransportError
from .interfaces import AudioInputDevice, LiveSession, SessionListener
from .models import (
    ConnectionState,
    DetectedIntent,
    GoAway,
    IntentReported,
    ModelAudio,
    SessionClosed,
    SessionEvent,
    SessionOpened,
    TranscriptUpdate,
    TransportFailure,
    TurnComplete,
)
from .services.live_session import GeminiLiveAdapter

logger = logging.getLogger(__name__)


class LiveSessionManager:
    """
    Owns the microphone, the remote session and the wiring between them.

    State machine: ``IDLE -> CONNECTING -> OPEN -> CLOSING -> IDLE``. Every
    failure, remote close and user stop goes through :meth:`disconnect`, which
    is idempotent and safe to call from any listener or network callback.

    Usage:
        manager = LiveSessionManager(config, device=SoundDeviceMicrophone())
        manager.add_listener(MonitorState())
        if manager.connect():
            ...
        manager.disconnect()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        device: AudioInputDevice,
        session: Optional[LiveSession] = None,
    ) -> None:
        self._config = config
        self._device = device
        self._session: LiveSession = session or GeminiLiveAdapter(
            config.url,
            model=config.model,
            policy=config.intent_policy,
            handshake_timeout=config.handshake_timeout,
            outbox_size=config.outbox_size,
        )
        self._pipeline = CapturePipeline(device, on_volume=self._notify_volume)
        self._listeners: List[SessionListener] = []
        self._lock = threading.RLock()
        self._state = ConnectionState.IDLE
        self._cycle_active = False
        self._error_reported = False
        self._ended = threading.Event()
        self._ended.set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Block until the current cycle has been torn down."""
        return self._ended.wait(timeout)

    def connect(self) -> bool:
        """
        Acquire the microphone, then open the remote session.

        Returns:
            True when the session is open. On failure every partially acquired
            resource is released, listeners get one error and one disconnect
            notification, and False is returned.
        """
        with self._lock:
            if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
                return self._state is ConnectionState.OPEN
            if self._state is ConnectionState.CLOSING:
                logger.warning("connect() ignored while the previous session is closing")
                return False
            self._cycle_active = True
            self._error_reported = False
            self._ended.clear()
            self._set_state(ConnectionState.CONNECTING)

        try:
            self._device.acquire()
            if self._state is not ConnectionState.CONNECTING:
                self._device.release()
                return False
            self._session.open(self._handle_event)
        except (DeviceAcquisitionError, HandshakeError) as exc:
            if self._state is not ConnectionState.CONNECTING:
                logger.info("Connect cancelled: %s", exc)
                return False
            self._fail(exc)
            return False
        except Exception as exc:
            logger.exception("Unexpected error while connecting")
            self._fail(HandshakeError(str(exc)))
            return False

        with self._lock:
            if self._state is not ConnectionState.OPEN:
                # torn down while the handshake was completing
                return False
        logger.info("Monitoring started")
        return True

    def disconnect(self) -> None:
        """Release capture and transport and notify listeners once per cycle."""
        with self._lock:
            if not self._cycle_active or self._state is ConnectionState.CLOSING:
                return
            self._set_state(ConnectionState.CLOSING)

        # resources are released without holding the lock so network callbacks
        # racing with this teardown can run to completion
        try:
            self._pipeline.stop()
        except Exception as exc:
            logger.warning("Error stopping capture: %s", exc)
        try:
            self._session.close()
        except Exception as exc:
            logger.warning("Error closing live session: %s", exc)

        with self._lock:
            self._cycle_active = False
            self._set_state(ConnectionState.IDLE)
        self._ended.set()
        logger.info("Monitoring stopped")
        self._notify("on_disconnect")

    # Event dispatch, on the adapter's threads.

    def _handle_event(self, event: SessionEvent) -> None:
        if isinstance(event, TranscriptUpdate):
            self._notify("on_transcript", event.text)
        elif isinstance(event, IntentReported):
            report = event.report
            intent = DetectedIntent(
                id=str(uuid.uuid4()),
                text=report.text,
                category=report.category,
                timestamp=time.time(),
                answer=report.answer,
            )
            logger.info("Intent detected (%s): %s", intent.category.value, intent.text)
            self._notify("on_intent", intent)
        elif isinstance(event, SessionOpened):
            self._handle_open()
        elif isinstance(event, ModelAudio):
            self._notify("on_model_audio", event.samples, event.sample_rate)
        elif isinstance(event, TurnComplete):
            logger.debug("Server turn complete")
        elif isinstance(event, GoAway):
            logger.warning("Server will end the session soon (time left: %s)", event.time_left)
        elif isinstance(event, TransportFailure):
            self._fail(event.error)
        elif isinstance(event, SessionClosed):
            logger.info("Session closed remotely (code=%s)", event.code)
            self.disconnect()

    def _handle_open(self) -> None:
        with self._lock:
            if self._state is not ConnectionState.CONNECTING:
                return
            try:
                self._pipeline.start(self._session.send_audio)
            except Exception as exc:
                error = exc
            else:
                self._set_state(ConnectionState.OPEN)
                return
        self._fail(DeviceAcquisitionError(f"Could not start capture: {error}"))

    def _fail(self, error: Exception) -> None:
        with self._lock:
            first = not self._error_reported
            self._error_reported = True
        if first:
            if not isinstance(error, TransportError):
                logger.error("Session failed: %s", error)
            self._notify("on_error", error)
        self.disconnect()

    # Listener fan-out.

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify("on_state_change", state)

    def _notify_volume(self, volume: float) -> None:
        self._notify("on_volume", volume)

    def _notify(self, channel: str, *args: object) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, channel)(*args)
            except Exception:
                logger.exception("Listener %s.%s failed", type(listener).__name__, channel)
