"""Shared dataclasses for the monitor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np


class IntentCategory(str, Enum):
    """Classification attached to a reported utterance."""

    QUESTION = "QUESTION"
    IMPERATIVE = "IMPERATIVE"


class IntentPolicy(str, Enum):
    """Whether the remote model should also answer what it reports."""

    REPORT_ONLY = "report-only"
    REPORT_AND_ANSWER = "report-and-answer"


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


@dataclass(frozen=True)
class PcmPacket:
    """
    Base64 encoded 16-bit little-endian PCM tagged with its sample rate.

    Attributes:
        data: Base64 payload.
        sample_rate: Rate in Hz the samples were captured at.
    """

    data: str
    sample_rate: int

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.sample_rate}"

    def as_blob(self) -> Dict[str, str]:
        """Convert to the realtime input blob shape."""
        return {"data": self.data, "mimeType": self.mime_type}


@dataclass(frozen=True)
class IntentReport:
    """A ``report_intent`` invocation as received from the server."""

    text: str
    category: IntentCategory
    answer: Optional[str] = None


@dataclass(frozen=True)
class DetectedIntent:
    """
    Intent record handed to listeners.

    Attributes:
        id: Unique id assigned when the report was received.
        text: Verbatim user utterance.
        category: Question or imperative.
        timestamp: Wall clock seconds when the report was received.
        answer: Optional answer generated by the remote model.
    """

    id: str
    text: str
    category: IntentCategory
    timestamp: float
    answer: Optional[str] = None


@dataclass(frozen=True)
class ToolCallAcknowledgement:
    """Response correlated with one tool call, sent exactly once."""

    call_id: Optional[str]
    tool_name: str
    result: Dict[str, Any]


# Events emitted by the protocol adapter, in transport order.


@dataclass(frozen=True)
class SessionOpened:
    pass


@dataclass(frozen=True)
class TranscriptUpdate:
    text: str


@dataclass(frozen=True)
class ToolCall:
    call_id: Optional[str]
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IntentReported:
    call_id: Optional[str]
    report: IntentReport


@dataclass(frozen=True)
class ModelAudio:
    samples: np.ndarray = field(compare=False)
    sample_rate: int = 24000


@dataclass(frozen=True)
class TurnComplete:
    pass


@dataclass(frozen=True)
class GoAway:
    time_left: Optional[str] = None


@dataclass(frozen=True)
class SessionClosed:
    code: Optional[int] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class TransportFailure:
    error: Exception


SessionEvent = Union[
    SessionOpened,
    TranscriptUpdate,
    ToolCall,
    IntentReported,
    ModelAudio,
    TurnComplete,
    GoAway,
    SessionClosed,
    TransportFailure,
]


@dataclass(frozen=True)
class TranscriptSnapshot:
    """Read-only view of the projected transcript and intents."""

    history: Tuple[str, ...]
    current: str
    intents: Tuple[DetectedIntent, ...]
