"""Shared test fixtures."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image


def solid(rgb, size=(4, 3)) -> np.ndarray:
    """(H, W, 3) uint8 array filled with one color."""
    w, h = size
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[...] = rgb
    return arr


@pytest.fixture
def grey_ramp() -> np.ndarray:
    """One row holding every grey from 0 to 255."""
    values = np.arange(256, dtype=np.uint8)
    return np.repeat(values[None, :, None], 3, axis=2)


@pytest.fixture
def make_image(tmp_path):
    """Write a two-tone PNG (dark grey left half, light grey right half)."""
    def _make(name="photo.png", dark=50, light=200):
        arr = solid((dark, dark, dark), size=(8, 4))
        arr[:, 4:] = light
        path = tmp_path / name
        Image.fromarray(arr).save(path)
        return path
    return _make
