from __future__ import annotations

import numpy as np
import pytest

from fakes import AppFactory, FakeDevice, RecordingListener, wait_for

from intent_monitor.config import AppConfig
from intent_monitor.exceptions import DeviceAcquisitionError, HandshakeError, TransportError
from intent_monitor.models import ConnectionState, IntentCategory
from intent_monitor.protocol import REPORT_INTENT
from intent_monitor.services.live_session import GeminiLiveAdapter
from intent_monitor.session import LiveSessionManager
from intent_monitor.state import MonitorState


def _config() -> AppConfig:
    return AppConfig(api_key="test-key", model="models/test", handshake_timeout=0.5)


def _manager(factory: AppFactory, device: FakeDevice):
    adapter = GeminiLiveAdapter(
        "wss://example.test/live", model="models/test", handshake_timeout=0.5, app_factory=factory
    )
    manager = LiveSessionManager(_config(), device=device, session=adapter)
    listener = RecordingListener()
    manager.add_listener(listener)
    return manager, adapter, listener


def _intent(call_id: str, text: str, kind: str = "QUESTION") -> dict:
    return {"toolCall": {"functionCalls": [{"id": call_id, "name": REPORT_INTENT, "args": {"text": text, "type": kind}}]}}


def test_connect_opens_session_and_wires_capture() -> None:
    factory = AppFactory()
    device = FakeDevice()
    manager, adapter, listener = _manager(factory, device)

    assert manager.connect()

    assert manager.state is ConnectionState.OPEN
    assert device.started
    assert listener.states == [ConnectionState.CONNECTING, ConnectionState.OPEN]
    device.push(np.full(4096, 0.5, dtype=np.float32))
    assert listener.volumes == [pytest.approx(0.5)]
    assert wait_for(lambda: len(factory.app.sent_of("realtimeInput")) == 1)
    manager.disconnect()


def test_connect_while_open_is_a_no_op() -> None:
    factory = AppFactory()
    manager, _, _ = _manager(factory, FakeDevice())

    assert manager.connect()
    assert manager.connect()

    assert len(factory.apps) == 1
    manager.disconnect()


def test_device_failure_never_opens_remote_session() -> None:
    factory = AppFactory()
    device = FakeDevice(fail=True)
    manager, _, listener = _manager(factory, device)

    assert manager.connect() is False

    assert factory.apps == []
    assert len(listener.errors) == 1
    assert isinstance(listener.errors[0], DeviceAcquisitionError)
    assert listener.disconnects == 1
    assert manager.state is ConnectionState.IDLE


def test_handshake_failure_unwinds_device() -> None:
    factory = AppFactory(refuse="forbidden")
    device = FakeDevice()
    manager, adapter, listener = _manager(factory, device)

    assert manager.connect() is False

    assert [type(e) for e in listener.errors] == [HandshakeError]
    assert listener.disconnects == 1
    assert not device.acquired
    assert device.release_calls == 1
    assert not adapter.is_open


def test_disconnect_twice_notifies_once() -> None:
    factory = AppFactory()
    manager, _, listener = _manager(factory, FakeDevice())
    manager.connect()

    manager.disconnect()
    manager.disconnect()

    assert listener.disconnects == 1
    assert listener.errors == []
    assert manager.state is ConnectionState.IDLE


def test_disconnect_without_connect_is_silent() -> None:
    manager, _, listener = _manager(AppFactory(), FakeDevice())

    manager.disconnect()

    assert listener.disconnects == 0


def test_transport_error_tears_down_once() -> None:
    factory = AppFactory()
    device = FakeDevice()
    manager, adapter, listener = _manager(factory, device)
    state = MonitorState()
    manager.add_listener(state)
    manager.connect()
    assert state.recording

    factory.app.fail(OSError("connection reset"))
    factory.app.fail(OSError("connection reset"))

    assert len(listener.errors) == 1
    assert isinstance(listener.errors[0], TransportError)
    assert listener.disconnects == 1
    assert not device.acquired
    assert not adapter.is_open
    assert factory.app.close_calls == 1
    assert manager.state is ConnectionState.IDLE
    assert state.recording is False
    assert state.last_error


def test_remote_close_uses_the_disconnect_path() -> None:
    factory = AppFactory()
    device = FakeDevice()
    manager, _, listener = _manager(factory, device)
    manager.connect()

    factory.app.closed.set()

    assert manager.wait_closed(1.0)
    assert listener.disconnects == 1
    assert listener.errors == []
    assert not device.acquired


def test_disconnect_from_inside_a_listener() -> None:
    factory = AppFactory()
    manager, _, listener = _manager(factory, FakeDevice())

    class StopOnFirstIntent(RecordingListener):
        def on_intent(self, intent) -> None:
            manager.disconnect()

    manager.add_listener(StopOnFirstIntent())
    manager.connect()
    factory.app.deliver(_intent("c1", "stop now", "IMPERATIVE"))

    assert listener.disconnects == 1
    assert manager.state is ConnectionState.IDLE
    # the acknowledgement still went out before teardown finished
    assert len(factory.app.sent_of("toolResponse")) == 1


def test_intents_keep_arrival_order_with_distinct_ids() -> None:
    factory = AppFactory()
    manager, _, listener = _manager(factory, FakeDevice())
    manager.connect()

    for call_id, text in [("1", "i1"), ("2", "i2"), ("3", "i3")]:
        factory.app.deliver(_intent(call_id, text))

    assert [i.text for i in listener.intents] == ["i1", "i2", "i3"]
    assert len({i.id for i in listener.intents}) == 3
    assert all(i.category is IntentCategory.QUESTION for i in listener.intents)
    manager.disconnect()


def test_duplicate_reports_are_preserved() -> None:
    factory = AppFactory()
    manager, _, listener = _manager(factory, FakeDevice())
    manager.connect()

    factory.app.deliver(_intent("1", "what time is it"))
    factory.app.deliver(_intent("2", "what time is it"))

    assert [i.text for i in listener.intents] == ["what time is it", "what time is it"]
    assert len(factory.app.sent_of("toolResponse")) == 2
    manager.disconnect()


def test_failing_listener_does_not_break_the_session() -> None:
    factory = AppFactory()
    manager, _, listener = _manager(factory, FakeDevice())

    class Broken(RecordingListener):
        def on_transcript(self, text: str) -> None:
            raise RuntimeError("render failed")

    manager.add_listener(Broken())
    manager.connect()
    factory.app.deliver({"serverContent": {"inputTranscription": {"text": "hello"}}})

    assert listener.transcripts == ["hello"]
    assert manager.is_connected
    manager.disconnect()


def test_reconnect_after_disconnect_starts_a_new_cycle() -> None:
    factory = AppFactory()
    device = FakeDevice()
    manager, _, listener = _manager(factory, device)

    manager.connect()
    manager.disconnect()
    assert manager.connect()
    manager.disconnect()

    assert len(factory.apps) == 2
    assert listener.disconnects == 2
