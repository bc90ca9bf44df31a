"""Gemini Live session adapter built on websocket-client's WebSocketApp."""

from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Any, Callable, Dict, Optional

import websocket

from ..exceptions import DecodeError, HandshakeError, TransportError
from ..interfaces import EventHandler, LiveSession
from ..models import (
    IntentPolicy,
    IntentReported,
    PcmPacket,
    SessionClosed,
    SessionEvent,
    SessionOpened,
    ToolCall,
    ToolCallAcknowledgement,
    TransportFailure,
)
from ..protocol import (
    REPORT_INTENT,
    build_audio_message,
    build_setup_message,
    build_tool_response,
    parse_intent_args,
    parse_server_message,
)

logger = logging.getLogger(__name__)

AppFactory = Callable[..., Any]

_STOP = object()


class GeminiLiveAdapter(LiveSession):
    """
    Owns one bidirectional streaming connection to the Live API.

    Protocol:
        1. Connect the WebSocket (receiver thread runs ``run_forever``)
        2. Send the setup frame from ``on_open``
        3. Wait for ``setupComplete`` (handshake)
        4. Stream ``realtimeInput`` audio from the sender thread
        5. Answer every ``toolCall`` with a ``toolResponse`` on the receiver thread

    Audio handed in before step 3 completes is dropped. Events are delivered to
    the ``on_event`` handler on the receiver thread in transport order.

    Usage:
        >>> adapter = GeminiLiveAdapter(config.url, model=config.model)
        >>> adapter.open(print)
        >>> adapter.send_audio(encode_pcm(frame, 16000))
        >>> adapter.close()
    """

    def __init__(
        self,
        url: str,
        *,
        model: str,
        policy: IntentPolicy = IntentPolicy.REPORT_AND_ANSWER,
        handshake_timeout: float = 10.0,
        outbox_size: int = 64,
        app_factory: AppFactory = websocket.WebSocketApp,
    ) -> None:
        self._url = url
        self._model = model
        self._policy = policy
        self._handshake_timeout = handshake_timeout
        self._outbox_size = outbox_size
        self._app_factory = app_factory

        self._app: Optional[Any] = None
        self._receiver: Optional[threading.Thread] = None
        self._sender: Optional[threading.Thread] = None
        self._outbox: "queue.Queue[Any]" = queue.Queue(maxsize=outbox_size)
        self._on_event: Optional[EventHandler] = None
        self._lock = threading.Lock()

        self._handshake_done = threading.Event()
        self._handshake_error: Optional[str] = None
        self._open = False
        self._closing = False

        self.packets_sent = 0
        self.packets_dropped = 0
        self.acks_sent = 0

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self, on_event: EventHandler) -> None:
        with self._lock:
            if self._app is not None:
                raise HandshakeError("Session adapter is already in use")
            self._on_event = on_event
            self._closing = False
            self._open = False
            self._handshake_error = None
            self._handshake_done.clear()
            self._outbox = queue.Queue(maxsize=self._outbox_size)
            self._app = self._app_factory(
                self._url,
                on_open=self._handle_open,
                on_message=self._handle_message,
                on_error=self._handle_error,
                on_close=self._handle_close,
            )
            receiver = threading.Thread(target=self._app.run_forever, name="live-session-recv", daemon=True)
            self._receiver = receiver

        logger.info("Connecting to live session (%s)...", self._model)
        receiver.start()

        if not self._handshake_done.wait(self._handshake_timeout):
            self.close()
            raise HandshakeError(f"Timed out after {self._handshake_timeout:.1f}s waiting for session setup")
        if self._handshake_error is not None:
            error = self._handshake_error
            self.close()
            raise HandshakeError(f"Live session failed to open: {error}")
        if self._closing:
            raise HandshakeError("Live session was closed during the handshake")
        logger.info("Live session open")

    def send_audio(self, packet: PcmPacket) -> None:
        if not self._open:
            self.packets_dropped += 1
            if self.packets_dropped == 1 or self.packets_dropped % 50 == 0:
                logger.debug("Transport not open, dropped %d packet(s)", self.packets_dropped)
            return
        try:
            self._outbox.put_nowait(build_audio_message(packet))
        except queue.Full:
            self.packets_dropped += 1
            logger.warning("Audio outbox full, dropping frame")

    def close(self) -> None:
        with self._lock:
            app, self._app = self._app, None
            if app is None:
                return
            self._closing = True
            self._open = False
            receiver, self._receiver = self._receiver, None
            sender, self._sender = self._sender, None
        # wake a pending open() so it does not wait out the full timeout
        self._handshake_done.set()

        _drain(self._outbox)
        self._outbox.put(_STOP)
        try:
            app.close()
        except Exception as exc:
            logger.warning("Error closing live session: %s", exc)

        current = threading.current_thread()
        for thread in (sender, receiver):
            if thread is not None and thread is not current and thread.is_alive():
                thread.join(timeout=2.0)
        logger.info("Live session closed (%d packets sent, %d dropped)", self.packets_sent, self.packets_dropped)

    # WebSocketApp callbacks, all on the receiver thread.

    def _handle_open(self, ws: Any) -> None:
        logger.debug("WebSocket connected, sending setup")
        try:
            ws.send(json.dumps(build_setup_message(self._model, self._policy)))
        except Exception as exc:
            self._fail_handshake(f"could not send setup: {exc}")

    def _handle_message(self, ws: Any, message: Any) -> None:
        if self._closing:
            return
        try:
            events = parse_server_message(message)
        except DecodeError as exc:
            logger.warning("Dropping inbound message: %s", exc)
            return
        except Exception:
            # one bad frame must not reach on_error and end the session
            logger.exception("Dropping unparseable inbound message")
            return

        for event in events:
            if isinstance(event, SessionOpened):
                self._complete_handshake()
            elif isinstance(event, ToolCall):
                self._handle_tool_call(ws, event)
            else:
                self._emit(event)

    def _handle_tool_call(self, ws: Any, call: ToolCall) -> None:
        report = None
        result: Dict[str, Any] = {"result": "logged"}
        if not call.name:
            logger.warning("Function call %s has no name", call.call_id)
            result = {"error": "function call is missing a name"}
        elif call.name != REPORT_INTENT:
            logger.warning("Ignoring unknown function call: %s", call.name)
            result = {"error": f"unknown function {call.name}"}
        else:
            try:
                report = parse_intent_args(call.args)
            except DecodeError as exc:
                logger.warning("Invalid %s arguments: %s", REPORT_INTENT, exc)
                result = {"error": str(exc)}

        # acknowledged before listeners run; an unanswered call stalls the remote session
        self._acknowledge(ws, ToolCallAcknowledgement(call_id=call.call_id, tool_name=call.name, result=result))
        if report is not None:
            self._emit(IntentReported(call_id=call.call_id, report=report))

    def _acknowledge(self, ws: Any, ack: ToolCallAcknowledgement) -> None:
        try:
            ws.send(json.dumps(build_tool_response(ack)))
            self.acks_sent += 1
        except Exception as exc:
            self._report_failure(TransportError(f"Failed to acknowledge tool call {ack.call_id}: {exc}"))

    def _handle_error(self, ws: Any, error: Any) -> None:
        if self._closing:
            return
        if not self._handshake_done.is_set():
            self._fail_handshake(str(error))
            return
        logger.error("Live session transport error: %s", error)
        self._report_failure(TransportError(str(error) or error.__class__.__name__))

    def _handle_close(self, ws: Any, close_status_code: Optional[int], close_msg: Optional[str]) -> None:
        was_open = self._open
        self._open = False
        if self._closing:
            return
        if not self._handshake_done.is_set():
            reason = close_msg or "connection closed"
            self._fail_handshake(f"{reason} (code {close_status_code})")
            return
        if was_open:
            logger.info("Live session closed by server (code=%s, reason=%s)", close_status_code, close_msg)
            self._emit(SessionClosed(code=close_status_code, reason=close_msg or None))

    # Internal helpers.

    def _complete_handshake(self) -> None:
        if self._handshake_done.is_set():
            return
        self._open = True
        self._sender = threading.Thread(target=self._pump_audio, args=(self._outbox,), name="live-session-send", daemon=True)
        self._sender.start()
        # listeners wire capture before open() returns to the caller
        self._emit(SessionOpened())
        self._handshake_done.set()

    def _fail_handshake(self, error: str) -> None:
        logger.error("Live session handshake failed: %s", error)
        self._handshake_error = error
        self._handshake_done.set()

    def _report_failure(self, error: TransportError) -> None:
        self._open = False
        self._emit(TransportFailure(error=error))

    def _pump_audio(self, outbox: "queue.Queue[Any]") -> None:
        while True:
            message = outbox.get()
            if message is _STOP:
                return
            app = self._app
            if app is None or not self._open:
                continue
            try:
                app.send(json.dumps(message))
                self.packets_sent += 1
            except Exception as exc:
                if not self._closing:
                    logger.error("Audio send failed: %s", exc)
                    self._report_failure(TransportError(f"Audio send failed: {exc}"))
                return

    def _emit(self, event: SessionEvent) -> None:
        handler = self._on_event
        if handler is None or self._closing:
            return
        try:
            handler(event)
        except Exception:
            logger.exception("Session event handler failed for %s", type(event).__name__)


def _drain(outbox: "queue.Queue[Any]") -> None:
    while True:
        try:
            outbox.get_nowait()
        except queue.Empty:
            return
