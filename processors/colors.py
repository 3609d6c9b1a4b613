"""
Voxel value -> RGBA8 mapping shared by the resamplers.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from config import OPAQUE_ALPHA, TEXTURE_CHANNELS
from core.base import ColorTable


def grayscale_levels(values: np.ndarray, max_value: float) -> np.ndarray:
    """
    Map scalars to 0..255 gray levels as ``255 * value / max``.

    A non-positive ``max_value`` maps everything to 0 instead of dividing by
    zero. Results are clipped to the byte range and truncated.
    """
    arr = np.asarray(values, dtype=np.float64)
    if max_value > 0:
        levels = arr * 255.0 / float(max_value)
    else:
        levels = np.zeros_like(arr)
    levels = np.nan_to_num(levels, nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(levels, 0.0, 255.0).astype(np.uint8)


def grayscale_rgba(values: np.ndarray, max_value: float) -> np.ndarray:
    """Opaque gray RGBA for every value; output shape is values.shape + (4,)."""
    gray = grayscale_levels(values, max_value)
    rgba = np.empty(gray.shape + (TEXTURE_CHANNELS,), dtype=np.uint8)
    rgba[..., 0] = gray
    rgba[..., 1] = gray
    rgba[..., 2] = gray
    rgba[..., 3] = OPAQUE_ALPHA
    return rgba


def colortable_rgba(values: np.ndarray, colortable: ColorTable) -> np.ndarray:
    """
    Colour every value through ``colortable`` (floored labels).

    Missing labels take the table's fallback entry.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return np.zeros(arr.shape + (TEXTURE_CHANNELS,), dtype=np.uint8)
    labels = np.floor(np.nan_to_num(arr, nan=0.0)).astype(np.int64)
    unique, inverse = np.unique(labels, return_inverse=True)
    lut = np.array([colortable.lookup(int(label))[1:] for label in unique], dtype=np.float64)
    lut = (lut * 255.0).astype(np.uint8)
    return lut[inverse.reshape(-1)].reshape(arr.shape + (TEXTURE_CHANNELS,))


def map_to_rgba(values: np.ndarray, max_value: float, colortable: Optional[ColorTable] = None) -> np.ndarray:
    if colortable is not None:
        return colortable_rgba(values, colortable)
    return grayscale_rgba(values, max_value)


__all__ = ["grayscale_levels", "grayscale_rgba", "colortable_rgba", "map_to_rgba"]
