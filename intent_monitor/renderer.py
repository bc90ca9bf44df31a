"""Console output for the monitor."""

from __future__ import annotations

import sys
import time
from typing import Optional, TextIO

from .interfaces import SessionListener
from .models import ConnectionState, DetectedIntent, IntentCategory

_METER_WIDTH = 20
_METER_INTERVAL = 0.25


class ConsoleRenderer(SessionListener):
    """
    Prints transcript turns, detected intents and a small volume meter.

    Usage:
        manager.add_listener(ConsoleRenderer(show_volume=True))
    """

    def __init__(self, *, show_volume: bool = False, stream: Optional[TextIO] = None) -> None:
        self.show_volume = show_volume
        self._stream = stream or sys.stdout
        self._last_text = ""
        self._last_meter = 0.0

    def on_state_change(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTING:
            self._print("[monitor] → Connecting...")
        elif state is ConnectionState.OPEN:
            self._print("[monitor] ✓ Listening. Ask a question or give a command (Ctrl+C to stop).")

    def on_volume(self, volume: float) -> None:
        if not self.show_volume:
            return
        now = time.monotonic()
        if now - self._last_meter < _METER_INTERVAL:
            return
        self._last_meter = now
        filled = min(_METER_WIDTH, int(volume * _METER_WIDTH * 4))
        self._print(f"[level] {'#' * filled}{'.' * (_METER_WIDTH - filled)} {volume:.3f}")

    def on_transcript(self, text: str) -> None:
        if len(text) < len(self._last_text) and self._last_text.strip():
            self._print(f"[you] {self._last_text}")
        self._last_text = text

    def on_intent(self, intent: DetectedIntent) -> None:
        label = "?" if intent.category is IntentCategory.QUESTION else "!"
        self._print(f"[intent {label}] {intent.category.value}: {intent.text}")
        if intent.answer:
            self._print(f"           ↳ {intent.answer}")

    def on_error(self, error: Exception) -> None:
        self._print(f"[error] {error}")

    def on_disconnect(self) -> None:
        if self._last_text.strip():
            self._print(f"[you] {self._last_text}")
        self._last_text = ""
        self._print("[monitor] ✗ Disconnected")

    def _print(self, line: str) -> None:
        print(line, file=self._stream, flush=True)
