from __future__ import annotations

import time

from intent_monitor.models import ConnectionState, DetectedIntent, IntentCategory
from intent_monitor.state import MonitorState


def _feed(state: MonitorState, updates) -> MonitorState:
    for text in updates:
        state.on_transcript(text)
    return state


def test_shorter_update_starts_a_new_turn() -> None:
    state = _feed(MonitorState(), ["hi", "hi there", "go"])

    assert state.transcript_history == ["hi there"]
    assert state.current_transcript == "go"


def test_empty_predecessor_is_never_pushed() -> None:
    state = _feed(MonitorState(), ["", "hello"])

    assert state.transcript_history == []
    assert state.current_transcript == "hello"


def test_whitespace_only_turn_is_not_pushed() -> None:
    state = _feed(MonitorState(), ["   ", "a"])

    assert state.transcript_history == []
    assert state.current_transcript == "a"


def test_equal_length_update_replaces_current_turn() -> None:
    state = _feed(MonitorState(), ["abc", "abd", "abcdef", "x"])

    assert state.transcript_history == ["abcdef"]
    assert state.current_transcript == "x"


def test_intents_are_appended_in_order_without_dedup() -> None:
    state = MonitorState()
    first = DetectedIntent(id="1", text="same", category=IntentCategory.QUESTION, timestamp=time.time())
    second = DetectedIntent(id="2", text="same", category=IntentCategory.QUESTION, timestamp=time.time())

    state.on_intent(first)
    state.on_intent(second)

    assert state.snapshot().intents == (first, second)


def test_recording_flag_follows_state_and_errors() -> None:
    state = MonitorState()

    state.on_state_change(ConnectionState.CONNECTING)
    assert state.recording
    state.on_state_change(ConnectionState.OPEN)
    assert state.recording
    state.on_error(RuntimeError("lost connection"))
    assert state.recording is False
    assert state.last_error == "lost connection"


def test_disconnect_clears_current_turn_and_keeps_history() -> None:
    state = _feed(MonitorState(), ["one two", "x"])
    state.on_state_change(ConnectionState.OPEN)

    state.on_disconnect()

    snapshot = state.snapshot()
    assert snapshot.history == ("one two",)
    assert snapshot.current == ""
    assert state.recording is False
