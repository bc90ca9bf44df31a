from __future__ import annotations

import math

import numpy as np
import pytest

from intent_monitor.meter import measure_volume


def test_silence_is_zero() -> None:
    assert measure_volume(np.zeros(4096, dtype=np.float32)) == 0.0


def test_empty_frame_is_zero() -> None:
    assert measure_volume([]) == 0.0


def test_rms_of_constant_and_alternating_frames() -> None:
    assert measure_volume(np.full(1024, 0.5, dtype=np.float32)) == pytest.approx(0.5)
    assert measure_volume([1.0, -1.0, 1.0, -1.0]) == pytest.approx(1.0)


def test_values_above_unit_scale_are_not_capped() -> None:
    assert measure_volume([2.0, -2.0]) == pytest.approx(2.0)


def test_float64_and_integer_frames() -> None:
    assert measure_volume(np.full(8, 0.25, dtype=np.float64)) == pytest.approx(0.25)
    assert measure_volume(np.array([3, -4], dtype=np.int16)) == pytest.approx(math.sqrt(12.5))
