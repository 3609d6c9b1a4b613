"""
Coordinate conversion helpers and the reslicing transform stack.

Convention:
- Raw voxel arrays use index order (z, y, x) == (k, j, i)
- IJK points, world (RAS) points and spacing tuples use axis order (x, y, z)
- Matrices are 4x4 homogeneous affines acting on column vectors, so
  ``mat_mul(A, B)`` applies B first, then A.

Frames:
- IJK:   discrete voxel-index space of the volume buffer
- RAS:   physical/world space (Right-Anterior-Superior)
- Slice: a cutting plane's local frame (columns right, up, front)
- XY:    on-screen pixel space of a viewport showing one slice
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from config import (
    DETERMINANT_TOLERANCE,
    EPSILON,
    ORTHONORMAL_TOLERANCE,
    VIEWPORT_DIMENSIONS,
    VIEWPORT_FOV,
    VIEWPORT_XYZ_ORIGIN,
)

if TYPE_CHECKING:
    from core.base import Slice, Volume


# ---------------------------------------------------------------------------
# 3-vector helpers
# ---------------------------------------------------------------------------

def dot(a, b) -> float:
    return float(np.dot(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))


def cross(a, b) -> np.ndarray:
    return np.cross(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))


def magnitude(v) -> float:
    return float(np.linalg.norm(np.asarray(v, dtype=np.float64)))


def normalize(v) -> np.ndarray:
    """Return ``v`` scaled to unit length. Zero-length input is rejected."""
    arr = np.asarray(v, dtype=np.float64)
    length = float(np.linalg.norm(arr))
    if not np.isfinite(length) or length < EPSILON:
        raise ValueError(f"Cannot normalize a zero-length or non-finite vector: {arr.tolist()}")
    return arr / length


def unit_rows(rows) -> np.ndarray:
    """Normalize each row of a 3x3 block. Zero-length rows are rejected."""
    block = np.asarray(rows, dtype=np.float64).reshape(3, 3)
    return np.array([normalize(row) for row in block])


# ---------------------------------------------------------------------------
# 4x4 matrix helpers
# ---------------------------------------------------------------------------

def identity4() -> np.ndarray:
    return np.eye(4, dtype=np.float64)


def as_matrix4(matrix) -> np.ndarray:
    """Validate and convert an affine to a float64 (4, 4) array."""
    arr = np.asarray(matrix, dtype=np.float64)
    if arr.shape == (16,):
        arr = arr.reshape(4, 4)
    if arr.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 matrix, got shape={arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError("Matrix contains non-finite values.")
    return arr


def mat_mul(*matrices) -> np.ndarray:
    """
    Multiply 4x4 matrices left to right.

    ``mat_mul(A, B, C)`` maps a point through C, then B, then A.
    """
    if not matrices:
        return identity4()
    result = as_matrix4(matrices[0])
    for m in matrices[1:]:
        result = result @ as_matrix4(m)
    return result


def transform_point(matrix, points) -> np.ndarray:
    """Apply an affine to one point (3,) or a batch of points (N, 3), w=1."""
    m = np.asarray(matrix, dtype=np.float64)
    pts = np.asarray(points, dtype=np.float64)
    return pts @ m[:3, :3].T + m[:3, 3]


def transform_vector(matrix, vectors) -> np.ndarray:
    """Apply only the linear block of an affine (w=0)."""
    m = np.asarray(matrix, dtype=np.float64)
    vec = np.asarray(vectors, dtype=np.float64)
    return vec @ m[:3, :3].T


def invert_rigid(matrix) -> np.ndarray:
    """
    Invert a rotation + translation matrix.

    The rotation block is transposed and the translation becomes -R^T t.
    A block that is not orthonormal is rejected.
    """
    m = as_matrix4(matrix)
    rotation = m[:3, :3]
    if not np.allclose(rotation.T @ rotation, np.eye(3), atol=ORTHONORMAL_TOLERANCE):
        raise ValueError("invert_rigid requires an orthonormal 3x3 block.")
    inv = identity4()
    inv[:3, :3] = rotation.T
    inv[:3, 3] = -rotation.T @ m[:3, 3]
    return inv


def invert_affine(matrix) -> np.ndarray:
    """General affine inverse; singular matrices are rejected."""
    m = as_matrix4(matrix)
    det = float(np.linalg.det(m[:3, :3]))
    if abs(det) < DETERMINANT_TOLERANCE:
        raise ValueError(f"Matrix is not invertible (det={det:g}).")
    return np.linalg.inv(m)


# ---------------------------------------------------------------------------
# Transform builders
# ---------------------------------------------------------------------------

def ijk_to_ras_matrix(
    spacing: Sequence[float],
    origin: Sequence[float] = (0.0, 0.0, 0.0),
    direction_cosines=None,
) -> np.ndarray:
    """
    Build IJK->RAS from spacing, world origin of voxel (0, 0, 0) and
    direction cosines (row r = RAS direction of voxel axis r).
    Cosine rows are normalized so the column lengths equal the spacing.
    """
    sp = np.asarray(spacing, dtype=np.float64)
    if sp.shape != (3,) or np.any(sp <= 0):
        raise ValueError(f"Spacing must be three positive values, got {spacing}")
    cosines = np.eye(3) if direction_cosines is None else unit_rows(direction_cosines)
    m = identity4()
    m[:3, :3] = cosines.T * sp
    m[:3, 3] = np.asarray(origin, dtype=np.float64)
    return m


def slice_to_ras_matrix(right, up, front, center=None) -> np.ndarray:
    """
    Build Slice->RAS with columns (right, up, front).

    Translation is zero (identity) unless a ``center`` is given.
    """
    m = identity4()
    m[:3, 0] = np.asarray(right, dtype=np.float64)
    m[:3, 1] = np.asarray(up, dtype=np.float64)
    m[:3, 2] = np.asarray(front, dtype=np.float64)
    if center is not None:
        m[:3, 3] = np.asarray(center, dtype=np.float64)
    return m


def xy_to_slice_matrix(
    fov: Sequence[float] = VIEWPORT_FOV,
    dimensions: Sequence[int] = VIEWPORT_DIMENSIONS,
    xyz_origin: Sequence[float] = VIEWPORT_XYZ_ORIGIN,
) -> np.ndarray:
    """
    Embed viewport pixels into the slice frame.

    Pixel pitch is fov / dimensions on each axis and the viewport is centred
    on the slice origin, shifted by ``xyz_origin``. The through-plane
    translation is always zero.
    """
    fov_arr = np.asarray(fov, dtype=np.float64)
    dims = np.asarray(dimensions, dtype=np.float64)
    if np.any(dims <= 0):
        raise ValueError(f"Viewport dimensions must be positive, got {dimensions}")
    origin = np.asarray(xyz_origin, dtype=np.float64)
    m = identity4()
    for i in range(3):
        m[i, i] = fov_arr[i] / dims[i]
        m[i, 3] = -fov_arr[i] / 2.0 + origin[i]
    m[2, 3] = 0.0
    return m


# ---------------------------------------------------------------------------
# Transform stack
# ---------------------------------------------------------------------------

class TransformStack:
    """
    XY -> Slice -> RAS -> IJK chain for resolving viewport pixels to voxels.

    Composed matrices are rebuilt on every access, so changing any link is
    reflected immediately.
    """

    def __init__(self, ras_to_ijk=None, slice_to_ras=None, xy_to_slice=None) -> None:
        self._ras_to_ijk = identity4() if ras_to_ijk is None else as_matrix4(ras_to_ijk)
        self._slice_to_ras = identity4() if slice_to_ras is None else as_matrix4(slice_to_ras)
        self._xy_to_slice = identity4() if xy_to_slice is None else as_matrix4(xy_to_slice)

    @classmethod
    def from_volume(
        cls,
        volume: "Volume",
        slice_: Optional["Slice"] = None,
        fov: Sequence[float] = VIEWPORT_FOV,
        dimensions: Sequence[int] = VIEWPORT_DIMENSIONS,
        xyz_origin: Sequence[float] = VIEWPORT_XYZ_ORIGIN,
        place_at_center: bool = False,
    ) -> "TransformStack":
        """
        Slice->RAS is the slice frame rotation with identity translation;
        ``place_at_center`` moves its origin to the slice center instead.
        """
        slice_to_ras = None
        if slice_ is not None:
            center = slice_.center if place_at_center else None
            slice_to_ras = slice_to_ras_matrix(slice_.right, slice_.up, slice_.front, center)
        return cls(
            ras_to_ijk=volume.ras_to_ijk,
            slice_to_ras=slice_to_ras,
            xy_to_slice=xy_to_slice_matrix(fov, dimensions, xyz_origin),
        )

    @property
    def ras_to_ijk(self) -> np.ndarray:
        return self._ras_to_ijk.copy()

    @ras_to_ijk.setter
    def ras_to_ijk(self, matrix) -> None:
        self._ras_to_ijk = as_matrix4(matrix)

    @property
    def slice_to_ras(self) -> np.ndarray:
        return self._slice_to_ras.copy()

    @slice_to_ras.setter
    def slice_to_ras(self, matrix) -> None:
        self._slice_to_ras = as_matrix4(matrix)

    @property
    def xy_to_slice(self) -> np.ndarray:
        return self._xy_to_slice.copy()

    @xy_to_slice.setter
    def xy_to_slice(self, matrix) -> None:
        self._xy_to_slice = as_matrix4(matrix)

    @property
    def ras_to_slice(self) -> np.ndarray:
        return invert_rigid(self._slice_to_ras)

    @property
    def xy_to_ras(self) -> np.ndarray:
        return mat_mul(self._slice_to_ras, self._xy_to_slice)

    @property
    def xy_to_ijk(self) -> np.ndarray:
        return mat_mul(self._ras_to_ijk, self._slice_to_ras, self._xy_to_slice)

    def xy_to_ijk_point(self, x: float, y: float, z: float = 0.0) -> np.ndarray:
        return transform_point(self.xy_to_ijk, (x, y, z))


# ---------------------------------------------------------------------------
# Point conversions through a volume affine
# ---------------------------------------------------------------------------

def world_to_voxel(world_xyz, ras_to_ijk) -> np.ndarray:
    """Convert world (RAS) coordinates to fractional voxel indices (i, j, k)."""
    return transform_point(ras_to_ijk, world_xyz)


def voxel_to_world(ijk, ijk_to_ras) -> np.ndarray:
    """Convert voxel indices (i, j, k) to world (RAS) coordinates."""
    return transform_point(ijk_to_ras, ijk)


def world_to_index(
    world_xyz,
    ras_to_ijk,
    *,
    rounding: str = "round",
) -> Tuple[int, int, int]:
    """
    Convert world coordinates to integer voxel indices (i, j, k).

    rounding:
    - "round" (default): nearest integer
    - "floor": floor toward -inf
    - "ceil": ceil toward +inf
    """
    fi, fj, fk = world_to_voxel(world_xyz, ras_to_ijk)

    mode = str(rounding).strip().lower()
    if mode == "round":
        return (int(np.rint(fi)), int(np.rint(fj)), int(np.rint(fk)))
    if mode == "floor":
        return (int(np.floor(fi)), int(np.floor(fj)), int(np.floor(fk)))
    if mode == "ceil":
        return (int(np.ceil(fi)), int(np.ceil(fj)), int(np.ceil(fk)))
    raise ValueError(f"Unknown rounding mode: {rounding}")


__all__ = [
    "dot", "cross", "magnitude", "normalize", "unit_rows",
    "identity4", "as_matrix4", "mat_mul", "transform_point", "transform_vector",
    "invert_rigid", "invert_affine",
    "ijk_to_ras_matrix", "slice_to_ras_matrix", "xy_to_slice_matrix",
    "TransformStack",
    "world_to_voxel", "voxel_to_world", "world_to_index",
]
