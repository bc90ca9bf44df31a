"""Configuration helpers for the live intent monitor."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .models import IntentPolicy

DEFAULT_MODEL = "models/gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_ENDPOINT = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)


@dataclass
class AppConfig:
    """
    Runtime configuration for the monitor.

    Attributes:
        api_key: Key for the live speech service, appended to the endpoint URL.
        model: Model resource name announced in the setup message.
        endpoint: WebSocket URL of the bidirectional streaming endpoint.
        sample_rate: Requested capture rate; the device may override it.
        frame_size: Samples per capture callback.
        intent_policy: Whether the remote model answers what it reports.
        handshake_timeout: Seconds to wait for the session to open.
        outbox_size: Maximum audio packets queued for sending.
        input_wav: Optional WAV file replayed instead of the microphone.

    Usage:
        >>> config = AppConfig.from_env()
        >>> config.frame_size
        4096
    """

    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    endpoint: str = DEFAULT_ENDPOINT
    sample_rate: int = 16000
    frame_size: int = 4096
    intent_policy: IntentPolicy = IntentPolicy.REPORT_AND_ANSWER
    handshake_timeout: float = 10.0
    outbox_size: int = 64
    input_wav: Optional[str] = None

    @property
    def url(self) -> str:
        """Endpoint URL including the API key query parameter."""
        if not self.api_key:
            return self.endpoint
        separator = "&" if "?" in self.endpoint else "?"
        return f"{self.endpoint}{separator}key={self.api_key}"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Build an :class:`AppConfig` from environment variables (``.env`` is loaded first).

        Supported variables:
            - MONITOR_API_KEY: API key; falls back to GEMINI_API_KEY.
            - MONITOR_MODEL: Model resource name.
            - MONITOR_ENDPOINT: Live API WebSocket URL.
            - MONITOR_SAMPLE_RATE: Requested capture rate in Hz (default: 16000).
            - MONITOR_FRAME_SIZE: Samples per frame (default: 4096).
            - MONITOR_INTENT_POLICY: "report-only" or "report-and-answer" (default).
            - MONITOR_HANDSHAKE_TIMEOUT: Seconds (float, default: 10).
            - MONITOR_OUTBOX_SIZE: Queued packets before dropping (default: 64).
            - MONITOR_INPUT_WAV: Replay this WAV file instead of using the microphone.
        """
        load_dotenv(find_dotenv(usecwd=True))

        api_key = os.environ.get("MONITOR_API_KEY") or os.environ.get("GEMINI_API_KEY") or None
        model = os.environ.get("MONITOR_MODEL", DEFAULT_MODEL)
        if not model.startswith("models/"):
            model = f"models/{model}"
        endpoint = os.environ.get("MONITOR_ENDPOINT", DEFAULT_ENDPOINT)

        sample_rate = _int_env("MONITOR_SAMPLE_RATE", 16000)
        frame_size = _int_env("MONITOR_FRAME_SIZE", 4096)
        outbox_size = _int_env("MONITOR_OUTBOX_SIZE", 64)
        if sample_rate <= 0 or frame_size <= 0 or outbox_size <= 0:
            raise ValueError("MONITOR_SAMPLE_RATE, MONITOR_FRAME_SIZE and MONITOR_OUTBOX_SIZE must be positive")

        timeout_raw = os.environ.get("MONITOR_HANDSHAKE_TIMEOUT", "10")
        try:
            handshake_timeout = float(timeout_raw)
        except ValueError as exc:
            raise ValueError("MONITOR_HANDSHAKE_TIMEOUT must be a number") from exc

        policy_raw = os.environ.get("MONITOR_INTENT_POLICY", IntentPolicy.REPORT_AND_ANSWER.value)
        try:
            intent_policy = IntentPolicy(policy_raw.strip().lower())
        except ValueError as exc:
            raise ValueError("MONITOR_INTENT_POLICY must be 'report-only' or 'report-and-answer'") from exc

        return cls(
            api_key=api_key,
            model=model,
            endpoint=endpoint,
            sample_rate=sample_rate,
            frame_size=frame_size,
            intent_policy=intent_policy,
            handshake_timeout=handshake_timeout,
            outbox_size=outbox_size,
            input_wav=os.environ.get("MONITOR_INPUT_WAV") or None,
        )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
