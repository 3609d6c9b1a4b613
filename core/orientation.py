"""
Orientation normalization for direction-cosine matrices.

Direction cosines are packed as three rows (one per voxel axis i, j, k),
each row being the RAS direction of that voxel axis.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from config import EPSILON


RAS_POSITIVE_LABELS = ("right", "anterior", "superior")
LPS_LABELS = ("left", "posterior", "superior")

_ACQUISITION_BY_AXIS = {0: "sagittal", 1: "coronal", 2: "axial"}


def _as_cosine_rows(cosines) -> np.ndarray:
    arr = np.asarray(cosines, dtype=np.float64)
    if arr.size != 9:
        raise ValueError(f"Expected 9 direction cosines, got {arr.size}")
    arr = arr.reshape(3, 3)
    if not np.all(np.isfinite(arr)):
        raise ValueError("Direction cosines contain non-finite values.")
    return arr


def normalize_orientation(cosines) -> Tuple[np.ndarray, np.ndarray]:
    """
    Snap each cosine row to its dominant axis.

    Args:
        cosines: 9 values (three rows) or a 3x3 array.

    Returns:
        (orientation, normalized_cosines) where ``orientation`` holds the sign
        (+1/-1) of each row's dominant component and ``normalized_cosines`` is
        a 3x3 int array with a single +/-1 per row. Ties resolve to the first
        axis reaching the maximum absolute value.
        The axis index of each row is its non-zero column; see ``dominant_axes``.
    """
    rows = _as_cosine_rows(cosines)
    normalized = np.zeros((3, 3), dtype=np.int64)
    orientation = np.zeros(3, dtype=np.int64)
    for r in range(3):
        magnitudes = np.abs(rows[r])
        if magnitudes.max() < EPSILON:
            raise ValueError(f"Direction cosine row {r} is zero.")
        axis = int(np.argmax(magnitudes))
        sign = -1 if rows[r, axis] < 0 else 1
        normalized[r, axis] = sign
        orientation[r] = sign
    return orientation, normalized


def dominant_axes(normalized_cosines) -> np.ndarray:
    """World axis index (0=x, 1=y, 2=z) each snapped row points along."""
    rows = np.abs(np.asarray(normalized_cosines)).reshape(3, 3)
    return np.argmax(rows, axis=1)


def to_ras(space: Sequence[str], orientation) -> np.ndarray:
    """
    Flip an orientation expressed in an arbitrary anatomical space into RAS.

    ``space`` names the positive end of each world axis, e.g.
    ('left', 'posterior', 'superior') for DICOM LPS. Every coefficient on an
    axis whose positive end is not right/anterior/superior is negated.
    """
    if len(space) != 3:
        raise ValueError(f"Space must name 3 axes, got {list(space)}")
    ras = _as_cosine_rows(orientation).copy()
    for axis, label in enumerate(space):
        if str(label).strip().lower() != RAS_POSITIVE_LABELS[axis]:
            ras[:, axis] = -ras[:, axis]
    return ras.reshape(9)


def point_to_ras(space: Sequence[str], point) -> np.ndarray:
    """Negate the coordinates of a world point on axes whose positive end is not RAS."""
    if len(space) != 3:
        raise ValueError(f"Space must name 3 axes, got {list(space)}")
    p = np.asarray(point, dtype=np.float64).reshape(3).copy()
    for axis, label in enumerate(space):
        if str(label).strip().lower() != RAS_POSITIVE_LABELS[axis]:
            p[axis] = -p[axis]
    return p


def direction_cosines_from_affine(matrix) -> np.ndarray:
    """Unit direction of each voxel axis (columns of the 3x3 block) packed as rows."""
    m = np.asarray(matrix, dtype=np.float64)
    block = m[:3, :3]
    lengths = np.linalg.norm(block, axis=0)
    if np.any(lengths < EPSILON):
        raise ValueError("Affine has a zero-length voxel axis.")
    return (block / lengths).T


def is_axis_permutation(normalized_cosines) -> bool:
    """True when the snapped rows are three distinct axes."""
    rows = np.abs(np.asarray(normalized_cosines)).reshape(3, 3)
    return bool(np.array_equal(rows.sum(axis=0), np.ones(3)))


def classify_acquisition(normalized_cosines) -> str:
    """Name the acquisition plane from the through-plane (k) axis."""
    return _ACQUISITION_BY_AXIS[int(dominant_axes(normalized_cosines)[2])]


__all__ = [
    "RAS_POSITIVE_LABELS",
    "normalize_orientation",
    "dominant_axes",
    "LPS_LABELS",
    "to_ras",
    "point_to_ras",
    "direction_cosines_from_affine",
    "is_axis_permutation",
    "classify_acquisition",
]
