"""Replays a WAV file as if it were a live microphone."""

from __future__ import annotations

import logging
import threading
import time
import wave
from typing import Optional

import numpy as np

from ..exceptions import DeviceAcquisitionError
from ..interfaces import AudioInputDevice, FrameHandler

logger = logging.getLogger(__name__)


class WaveFileSource(AudioInputDevice):
    """
    Feeds a mono 16-bit WAV file to the pipeline in fixed-size frames.

    Frames are paced at real-time cadence on a worker thread so the remote
    service sees the same timing a microphone would produce. Useful for demos
    and for running without audio hardware.

    Args:
        path: WAV file to replay.
        frame_size: Samples per frame.
        realtime: Sleep between frames to match the file's sample rate.
    """

    def __init__(self, path: str, *, frame_size: int = 4096, realtime: bool = True) -> None:
        self.path = path
        self.frame_size = frame_size
        self.realtime = realtime
        self._wave: Optional[wave.Wave_read] = None
        self._rate = 0
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.finished = threading.Event()

    @property
    def sample_rate(self) -> int:
        return self._rate

    def acquire(self) -> None:
        if self._wave is not None:
            return
        try:
            wav = wave.open(self.path, "rb")
        except (OSError, EOFError, wave.Error) as exc:
            raise DeviceAcquisitionError(f"Cannot open {self.path}: {exc}") from exc
        if wav.getnchannels() != 1 or wav.getsampwidth() != 2:
            wav.close()
            raise DeviceAcquisitionError(f"{self.path} must be mono 16-bit PCM")
        self._wave = wav
        self._rate = wav.getframerate()
        self._stop.clear()
        self.finished.clear()

    def start(self, on_frame: FrameHandler) -> None:
        if self._wave is None:
            raise DeviceAcquisitionError("Source must be acquired before starting")
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, args=(self._wave, on_frame), name="wave-source", daemon=True)
        self._thread.start()

    def _run(self, wav: wave.Wave_read, on_frame: FrameHandler) -> None:
        interval = self.frame_size / float(self._rate)
        next_tick = time.monotonic()
        while not self._stop.is_set():
            raw = wav.readframes(self.frame_size)
            if not raw:
                logger.debug("Finished replaying %s", self.path)
                self.finished.set()
                return
            frame = np.frombuffer(raw, dtype="<i2").astype(np.float32) / np.float32(32768.0)
            if frame.size < self.frame_size:
                frame = np.pad(frame, (0, self.frame_size - frame.size))
            on_frame(frame)
            if self.realtime:
                next_tick += interval
                self._stop.wait(max(0.0, next_tick - time.monotonic()))

    def release(self) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        wav, self._wave = self._wave, None
        if wav is not None:
            wav.close()
