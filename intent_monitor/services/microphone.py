"""Microphone input backed by sounddevice."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..exceptions import DeviceAcquisitionError
from ..interfaces import AudioInputDevice, FrameHandler

logger = logging.getLogger(__name__)


class SoundDeviceMicrophone(AudioInputDevice):
    """
    Delivers fixed-size mono frames from the default microphone.

    The stream is opened in :meth:`acquire` but only started in :meth:`start`,
    so permission and device errors surface before any network work begins.

    Args:
        sample_rate: Requested rate (Hz). The host API may pick another one;
            :attr:`sample_rate` reports what the stream actually runs at.
        frame_size: Samples per callback.
        device: Optional sounddevice device index or name.

    Usage:
        mic = SoundDeviceMicrophone(sample_rate=16000, frame_size=4096)
        mic.acquire()
        mic.start(lambda frame: print(len(frame)))
        ...
        mic.release()
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        frame_size: int = 4096,
        device: Optional[object] = None,
    ) -> None:
        self.requested_rate = sample_rate
        self.frame_size = frame_size
        self.device = device
        self._stream = None
        self._on_frame: Optional[FrameHandler] = None

    @property
    def sample_rate(self) -> int:
        if self._stream is None:
            return self.requested_rate
        return int(self._stream.samplerate)

    @property
    def acquired(self) -> bool:
        return self._stream is not None

    def acquire(self) -> None:
        if self._stream is not None:
            return
        sd = _lazy_import_sounddevice()
        try:
            self._stream = sd.InputStream(
                samplerate=self.requested_rate,
                channels=1,
                dtype="float32",
                blocksize=self.frame_size,
                device=self.device,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise DeviceAcquisitionError(f"Microphone unavailable: {exc}") from exc

        if self.sample_rate != self.requested_rate:
            logger.warning("Requested %d Hz, device runs at %d Hz", self.requested_rate, self.sample_rate)

    def start(self, on_frame: FrameHandler) -> None:
        if self._stream is None:
            raise DeviceAcquisitionError("Microphone must be acquired before starting")
        self._on_frame = on_frame
        self._stream.start()

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        handler = self._on_frame
        if handler is None:
            return
        frame = np.array(indata[:, 0], dtype=np.float32)
        frame.flags.writeable = False
        handler(frame)

    def release(self) -> None:
        self._on_frame = None
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            logger.warning("Error closing input stream: %s", exc)


def _lazy_import_sounddevice():
    try:
        import sounddevice as sd  # type: ignore
    except (ImportError, OSError) as exc:  # pragma: no cover - runtime dependency
        raise DeviceAcquisitionError(
            "sounddevice (and the PortAudio library) is required for microphone capture. Install via pip."
        ) from exc
    return sd
