"""Per-frame processing between the input device and the session."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np

from .codec import encode_pcm
from .interfaces import AudioInputDevice
from .meter import measure_volume
from .models import PcmPacket

logger = logging.getLogger(__name__)

PacketSink = Callable[[PcmPacket], None]
VolumeHandler = Callable[[float], None]


class CapturePipeline:
    """
    Turns device frames into volume readings and encoded packets.

    Runs on the device callback thread, so every step is bounded: measure,
    encode, hand off. The sink must not block on network I/O.

    Usage:
        pipeline = CapturePipeline(device, on_volume=print)
        device.acquire()
        pipeline.start(adapter.send_audio)
        ...
        pipeline.stop()
    """

    def __init__(self, device: AudioInputDevice, *, on_volume: Optional[VolumeHandler] = None) -> None:
        self._device = device
        self._on_volume = on_volume
        self._sink: Optional[PacketSink] = None
        self.frames_processed = 0

    @property
    def running(self) -> bool:
        return self._sink is not None

    def start(self, sink: PacketSink) -> None:
        """Start delivering packets to ``sink``. The device must already be acquired."""
        if self._sink is not None:
            return
        # set first: a device may deliver its first frame from inside start()
        self._sink = sink
        try:
            self._device.start(self.process_frame)
        except Exception:
            self._sink = None
            raise
        logger.info("Capture started at %d Hz", self._device.sample_rate)

    def process_frame(self, samples: np.ndarray) -> None:
        sink = self._sink
        if sink is None:
            return
        try:
            volume = measure_volume(samples)
            if self._on_volume is not None:
                self._on_volume(volume)
            sink(encode_pcm(samples, self._device.sample_rate))
            self.frames_processed += 1
        except Exception as exc:  # never raise into the audio callback
            logger.warning("Dropping audio frame: %s", exc)

    def stop(self) -> None:
        """Stop delivery and release the device. Idempotent."""
        was_running = self._sink is not None
        self._sink = None
        self._device.release()
        if was_running:
            logger.info("Capture stopped after %d frames", self.frames_processed)
