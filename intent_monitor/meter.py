"""Loudness estimate for the live volume meter."""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np


def measure_volume(samples: Union[Sequence[float], np.ndarray]) -> float:
    """Return the root-mean-square of one frame (0.0 for silence or an empty frame)."""
    frame = np.asarray(samples).ravel()
    if frame.size == 0:
        return 0.0
    if frame.dtype.kind != "f":
        frame = frame.astype(np.float64)
    # dot accumulates the sum of squares without an intermediate array
    return math.sqrt(float(np.dot(frame, frame)) / frame.size)
