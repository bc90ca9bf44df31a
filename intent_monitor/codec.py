"""Float sample <-> base64 PCM16 conversion for the realtime wire format."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Sequence, Union

import numpy as np

from .exceptions import DecodeError
from .models import PcmPacket

_RATE_PARAM = re.compile(r"rate=(\d+)")


def encode_pcm(samples: Union[Sequence[float], np.ndarray], sample_rate: int) -> PcmPacket:
    """
    Encode normalized float samples as a base64 PCM16 packet.

    Samples are clamped to [-1, 1] first so loud input saturates instead of
    wrapping around. Negative values scale by 32768 and non-negative values by
    32767, then truncate toward zero.

    Args:
        samples: Mono float samples, nominally in [-1, 1].
        sample_rate: Effective capture rate used for the mime tag.

    Returns:
        PcmPacket ready for transmission.
    """
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0)
    clipped = np.clip(values, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    pcm = scaled.astype("<i2")
    return PcmPacket(
        data=base64.b64encode(pcm.tobytes()).decode("ascii"),
        sample_rate=int(sample_rate),
    )


def decode_pcm(packet: Union[PcmPacket, str]) -> np.ndarray:
    """
    Decode a base64 PCM16 payload back to float32 samples in [-1, 1).

    Raises:
        DecodeError: If the payload is not valid base64 or has an odd byte count.
    """
    payload = packet.data if isinstance(packet, PcmPacket) else packet
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise DecodeError(f"Invalid base64 audio payload: {exc}") from exc
    if len(raw) % 2:
        raise DecodeError(f"PCM16 payload has odd length ({len(raw)} bytes)")
    return np.frombuffer(raw, dtype="<i2").astype(np.float32) / np.float32(32768.0)


def parse_sample_rate(mime_type: str, default: int = 24000) -> int:
    """Read the ``rate=`` parameter of an ``audio/pcm`` mime type."""
    match = _RATE_PARAM.search(mime_type or "")
    return int(match.group(1)) if match else default
