from __future__ import annotations

import pytest

from intent_monitor.cli import build_device, build_manager, parse_args
from intent_monitor.config import AppConfig
from intent_monitor.services.microphone import SoundDeviceMicrophone
from intent_monitor.services.wave_source import WaveFileSource


def test_parse_args_overrides() -> None:
    args = parse_args(["--input", "demo.wav", "--policy", "report-only", "--duration", "5"])

    assert args.input == "demo.wav"
    assert args.policy == "report-only"
    assert args.duration == 5.0
    assert not args.verbose


def test_build_device_prefers_wav_replay() -> None:
    config = AppConfig(api_key="k", frame_size=1024, input_wav="demo.wav")

    device = build_device(config)

    assert isinstance(device, WaveFileSource)
    assert device.frame_size == 1024


def test_build_device_defaults_to_microphone() -> None:
    device = build_device(AppConfig(api_key="k", sample_rate=24000))

    assert isinstance(device, SoundDeviceMicrophone)
    assert device.requested_rate == 24000
    assert not device.acquired


def test_build_manager_requires_api_key() -> None:
    config = AppConfig(api_key=None)

    with pytest.raises(RuntimeError):
        build_manager(config, build_device(config))
