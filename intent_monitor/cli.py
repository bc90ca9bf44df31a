"""CLI harness for the live intent monitor."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

from .config import AppConfig
from .interfaces import AudioInputDevice
from .models import IntentPolicy
from .renderer import ConsoleRenderer
from .services.microphone import SoundDeviceMicrophone
from .services.wave_source import WaveFileSource
from .session import LiveSessionManager
from .state import MonitorState

_REPLAY_GRACE = 3.0


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # frame-level chatter from the websocket library is only useful when debugging it
    logging.getLogger("websocket").setLevel(logging.WARNING)


def build_device(config: AppConfig) -> AudioInputDevice:
    """Pick the microphone, or a WAV replay when ``input_wav`` is set."""
    if config.input_wav:
        return WaveFileSource(config.input_wav, frame_size=config.frame_size)
    return SoundDeviceMicrophone(sample_rate=config.sample_rate, frame_size=config.frame_size)


def build_manager(config: AppConfig, device: AudioInputDevice) -> LiveSessionManager:
    """Wire up the session manager with the given input device."""
    if not config.api_key:
        raise RuntimeError("MONITOR_API_KEY (or GEMINI_API_KEY) must be set.")
    return LiveSessionManager(config, device=device)


def _run_until_done(manager: LiveSessionManager, device: AudioInputDevice, duration: Optional[float]) -> None:
    deadline = None if duration is None else time.monotonic() + duration
    replay = device if isinstance(device, WaveFileSource) else None
    while not manager.wait_closed(timeout=0.2):
        if deadline is not None and time.monotonic() >= deadline:
            return
        if replay is not None and replay.finished.is_set():
            # give the service a moment to report on the last utterance
            manager.wait_closed(timeout=_REPLAY_GRACE)
            return


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Monitor live speech for questions and commands.")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--input",
        metavar="WAV",
        help="Replay a mono 16-bit WAV file instead of the microphone (overrides MONITOR_INPUT_WAV).",
    )
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in IntentPolicy],
        help="Override MONITOR_INTENT_POLICY.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Stop after this many seconds.",
    )
    parser.add_argument(
        "--show-volume",
        action="store_true",
        help="Print a live input level meter.",
    )
    return parser.parse_args(argv)


def _print_summary(state: MonitorState) -> None:
    snapshot = state.snapshot()
    print(f"\n[summary] {len(snapshot.history)} transcript turn(s), {len(snapshot.intents)} intent(s)")
    for index, intent in enumerate(snapshot.intents, start=1):
        print(f"  {index}. [{intent.category.value}] {intent.text}")
        if intent.answer:
            print(f"     ↳ {intent.answer}")
    if state.last_error:
        print(f"[summary] Last error: {state.last_error}")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    config = AppConfig.from_env()
    if args.input:
        config.input_wav = args.input
    if args.policy:
        config.intent_policy = IntentPolicy(args.policy)

    device = build_device(config)
    manager = build_manager(config, device)
    state = MonitorState()
    manager.add_listener(state)
    manager.add_listener(ConsoleRenderer(show_volume=args.show_volume))

    if not manager.connect():
        _print_summary(state)
        return 1
    try:
        _run_until_done(manager, device, args.duration)
    except KeyboardInterrupt:
        print("\n[monitor] Interrupted by user.")
    finally:
        manager.disconnect()
    _print_summary(state)
    return 0 if state.last_error is None else 1


if __name__ == "__main__":
    raise SystemExit(main())
