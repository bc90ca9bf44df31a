"""Reduces session notifications into displayable state."""

from __future__ import annotations

import threading
from typing import List, Optional

from .interfaces import SessionListener
from .models import ConnectionState, DetectedIntent, TranscriptSnapshot


class MonitorState(SessionListener):
    """
    Transcript history, current turn and detected intents for a UI.

    The server sends cumulative text for the current turn. An update that is
    strictly shorter than a non-empty current turn starts a new turn, and the
    previous text moves to history. Intents are kept in arrival order and are
    never deduplicated: repeated reports of the same utterance stay separate.

    Usage:
        >>> state = MonitorState()
        >>> for text in ["hi", "hi there", "go"]:
        ...     state.on_transcript(text)
        >>> state.transcript_history, state.current_transcript
        (['hi there'], 'go')
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.recording = False
        self.volume = 0.0
        self.transcript_history: List[str] = []
        self.current_transcript = ""
        self.intents: List[DetectedIntent] = []
        self.last_error: Optional[str] = None

    def on_state_change(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTING:
            self.last_error = None
        self.recording = state in (ConnectionState.CONNECTING, ConnectionState.OPEN)

    def on_volume(self, volume: float) -> None:
        self.volume = volume

    def on_transcript(self, text: str) -> None:
        with self._lock:
            previous = self.current_transcript
            if len(text) < len(previous) and previous.strip():
                self.transcript_history.append(previous)
            self.current_transcript = text

    def on_intent(self, intent: DetectedIntent) -> None:
        with self._lock:
            self.intents.append(intent)

    def on_error(self, error: Exception) -> None:
        self.last_error = str(error) or error.__class__.__name__
        self.recording = False

    def on_disconnect(self) -> None:
        self.recording = False
        self.volume = 0.0
        with self._lock:
            self.current_transcript = ""

    def snapshot(self) -> TranscriptSnapshot:
        with self._lock:
            return TranscriptSnapshot(
                history=tuple(self.transcript_history),
                current=self.current_transcript,
                intents=tuple(self.intents),
            )
