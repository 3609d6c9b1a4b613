"""
Core data structures and abstract base classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from config import COLORTABLE_FALLBACK, EPSILON, ORTHONORMAL_TOLERANCE, TEXTURE_CHANNELS
from core.coordinates import (
    as_matrix4,
    ijk_to_ras_matrix,
    invert_affine,
    transform_point,
    unit_rows,
)
from core.orientation import direction_cosines_from_affine, normalize_orientation


Vector3 = Tuple[float, float, float]


def array_min_max(data) -> Tuple[float, float]:
    """Return the (min, max) of an array."""
    arr = np.asarray(data)
    if arr.size == 0:
        raise ValueError("Cannot compute the range of an empty array.")
    return float(np.min(arr)), float(np.max(arr))


# ---------------------------------------------------------------------------
# Textures and colour tables
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Texture:
    """
    Raw RGBA8 pixel buffer.

    Attributes:
        width (int): Pixel columns.
        height (int): Pixel rows.
        data (np.ndarray): Flat uint8 buffer of width * height * 4 bytes;
            pixel (i, j) starts at byte 4 * (j * width + i).
    """
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self) -> None:
        self.width = int(self.width)
        self.height = int(self.height)
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Texture size must be non-negative, got {self.width}x{self.height}")
        self.data = np.ascontiguousarray(self.data, dtype=np.uint8).reshape(-1)
        expected = self.width * self.height * TEXTURE_CHANNELS
        if self.data.size != expected:
            raise ValueError(
                f"Texture buffer has {self.data.size} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA."
            )

    @classmethod
    def from_image(cls, image: np.ndarray) -> "Texture":
        """Build from an (height, width, 4) array."""
        arr = np.asarray(image)
        if arr.ndim != 3 or arr.shape[2] != TEXTURE_CHANNELS:
            raise ValueError(f"Expected an (H, W, 4) image, got shape={arr.shape}")
        return cls(width=arr.shape[1], height=arr.shape[0], data=arr)

    def as_image(self) -> np.ndarray:
        """View the buffer as (height, width, 4)."""
        return self.data.reshape(self.height, self.width, TEXTURE_CHANNELS)

    def pixel(self, i: int, j: int) -> Tuple[int, int, int, int]:
        r, g, b, a = self.as_image()[j, i]
        return int(r), int(g), int(b), int(a)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


ColorEntry = Tuple[int, float, float, float, float]


class ColorTable:
    """
    Integer label -> (index, r, g, b, a) mapping with channels in [0, 1].

    Non-integer labels are floored before lookup. ``lookup`` substitutes the
    fallback entry for labels missing from the table.
    """

    def __init__(
        self,
        entries: Optional[Mapping[int, Sequence[float]]] = None,
        fallback: Sequence[float] = COLORTABLE_FALLBACK,
    ) -> None:
        self._map: Dict[int, ColorEntry] = {}
        self.fallback: ColorEntry = self._coerce(int(fallback[0]), fallback)
        for label, values in (entries or {}).items():
            self.add(label, *values)

    @staticmethod
    def _coerce(label: int, values: Sequence[float]) -> ColorEntry:
        if len(values) == 4:
            index, channels = label, values
        elif len(values) == 5:
            index, channels = int(values[0]), values[1:]
        else:
            raise ValueError(f"Color entry for label {label} needs (r, g, b, a) or (index, r, g, b, a).")
        r, g, b, a = (float(c) for c in channels)
        for c in (r, g, b, a):
            if not 0.0 <= c <= 1.0:
                raise ValueError(f"Color channel {c} for label {label} is outside [0, 1].")
        return (int(index), r, g, b, a)

    def add(self, label: int, *values: float) -> None:
        key = int(np.floor(label))
        self._map[key] = self._coerce(key, values)

    def get(self, label: float) -> Optional[ColorEntry]:
        return self._map.get(int(np.floor(label)))

    def lookup(self, label: float) -> ColorEntry:
        entry = self.get(label)
        return self.fallback if entry is None else entry

    def labels(self) -> List[int]:
        return sorted(self._map)

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, label: float) -> bool:
        return int(np.floor(label)) in self._map

    def __iter__(self) -> Iterator[int]:
        return iter(self.labels())


# ---------------------------------------------------------------------------
# Geometry primitives
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Plane:
    """Cutting plane in world space; the normal is stored normalized."""
    origin: np.ndarray
    normal: np.ndarray

    def __post_init__(self) -> None:
        self.origin = np.asarray(self.origin, dtype=np.float64).reshape(3)
        normal = np.asarray(self.normal, dtype=np.float64).reshape(3)
        if not (np.all(np.isfinite(self.origin)) and np.all(np.isfinite(normal))):
            raise ValueError("Plane origin and normal must be finite.")
        length = float(np.linalg.norm(normal))
        if length < EPSILON:
            raise ValueError("Plane normal must not be the zero vector.")
        self.normal = normal / length

    @property
    def offset(self) -> float:
        """Signed distance d with n . p = d for every point p on the plane."""
        return float(np.dot(self.normal, self.origin))

    def signed_distance(self, point) -> float:
        return float(np.dot(self.normal, np.asarray(point, dtype=np.float64) - self.origin))


@dataclass(frozen=True)
class BoundingBox:
    """World-space box (xmin, xmax, ymin, ymax, zmin, zmax)."""
    bounds: Tuple[float, float, float, float, float, float]

    def __post_init__(self) -> None:
        b = [float(v) for v in self.bounds]
        if len(b) != 6:
            raise ValueError(f"Bounding box needs 6 values, got {len(b)}")
        for axis in range(3):
            lo, hi = b[2 * axis], b[2 * axis + 1]
            if lo > hi:
                b[2 * axis], b[2 * axis + 1] = hi, lo
        object.__setattr__(self, "bounds", tuple(b))

    @classmethod
    def from_origin_extent(cls, origin: Sequence[float], extent: Sequence[float]) -> "BoundingBox":
        return cls(tuple(
            v for axis in range(3)
            for v in (origin[axis], origin[axis] + extent[axis])
        ))

    @classmethod
    def from_volume(cls, volume: "Volume") -> "BoundingBox":
        return cls.from_origin_extent(volume.ras_origin, volume.ras_extent)

    def axis_range(self, axis: int) -> Tuple[float, float]:
        return self.bounds[2 * axis], self.bounds[2 * axis + 1]

    @property
    def center(self) -> np.ndarray:
        b = self.bounds
        return np.array([(b[0] + b[1]) / 2, (b[2] + b[3]) / 2, (b[4] + b[5]) / 2])

    def contains(self, point, tolerance: float = EPSILON) -> bool:
        p = np.asarray(point, dtype=np.float64)
        return all(
            self.bounds[2 * a] - tolerance <= p[a] <= self.bounds[2 * a + 1] + tolerance
            for a in range(3)
        )


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Volume:
    """
    Read-only description of a scalar volume and its voxel-to-world mapping.

    Attributes:
        data (np.ndarray): 3D voxel array in (z, y, x) == (k, j, i) order.
        spacing (Tuple[float, float, float]): Voxel spacing (x, y, z) in physical units.
            Derived from ``ijk_to_ras`` column lengths when omitted.
        ijk_to_ras (np.ndarray): 4x4 voxel-index -> world affine.
        scalar_range (Tuple[float, float]): (min, max) of the data.
        direction_cosines (np.ndarray): 3x3, row r = RAS direction of voxel axis r.
        labelmap (Optional[Volume]): Label volume with identical dimensions.
        colortable (Optional[ColorTable]): Label colours used when reslicing this volume.
        is_labelmap (bool): True for a label map attached to a parent volume.
        metadata (Dict[str, Any]): Arbitrary metadata.
    """
    data: np.ndarray
    spacing: Optional[Vector3] = None
    ijk_to_ras: Optional[np.ndarray] = None
    scalar_range: Optional[Tuple[float, float]] = None
    direction_cosines: Optional[np.ndarray] = None
    labelmap: Optional["Volume"] = None
    colortable: Optional[ColorTable] = None
    is_labelmap: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        arr = np.asarray(self.data)
        if arr.ndim != 3:
            raise ValueError(f"Expected 3D volume, got shape={arr.shape}")
        if any(int(d) <= 0 for d in arr.shape):
            raise ValueError(f"Volume dimensions must be positive, got shape={arr.shape}")
        self.data = arr

        if self.ijk_to_ras is None:
            spacing = (1.0, 1.0, 1.0) if self.spacing is None else self.spacing
            self.ijk_to_ras = ijk_to_ras_matrix(spacing, (0.0, 0.0, 0.0), self.direction_cosines)
        else:
            self.ijk_to_ras = as_matrix4(self.ijk_to_ras)
        # Rejects singular voxel-to-world mappings.
        invert_affine(self.ijk_to_ras)

        column_lengths = np.linalg.norm(self.ijk_to_ras[:3, :3], axis=0)
        if self.spacing is None:
            self.spacing = tuple(float(v) for v in column_lengths)
        spacing = tuple(float(v) for v in self.spacing)
        if len(spacing) != 3 or not all(np.isfinite(s) and s > 0 for s in spacing):
            raise ValueError(f"Spacing must be three positive values, got {self.spacing}")
        if not np.allclose(spacing, column_lengths, rtol=ORTHONORMAL_TOLERANCE, atol=0.0):
            raise ValueError(
                f"Spacing {spacing} disagrees with the affine voxel steps {tuple(column_lengths)}."
            )
        self.spacing = spacing

        # The cosines are the rotation block of the affine, never a separate frame.
        cosines = direction_cosines_from_affine(self.ijk_to_ras)
        if self.direction_cosines is not None:
            given = unit_rows(self.direction_cosines)
            if not np.allclose(given, cosines, atol=ORTHONORMAL_TOLERANCE):
                raise ValueError(
                    f"Direction cosines {given.tolist()} disagree with the affine {cosines.tolist()}."
                )
        self.direction_cosines = cosines

        if self.scalar_range is None:
            self.scalar_range = array_min_max(arr)
        else:
            self.scalar_range = (float(self.scalar_range[0]), float(self.scalar_range[1]))

        if self.labelmap is not None and self.labelmap.dimensions != self.dimensions:
            raise ValueError(
                f"Label map dimensions {self.labelmap.dimensions} do not match volume {self.dimensions}."
            )

    @classmethod
    def from_buffer(
        cls,
        buffer,
        dimensions: Sequence[int],
        **kwargs: Any,
    ) -> "Volume":
        """
        Build a volume from a flat row-major buffer (i fastest, then j, then k).
        """
        dims = tuple(int(d) for d in dimensions)
        if len(dims) != 3 or any(d <= 0 for d in dims):
            raise ValueError(f"Dimensions must be three positive integers, got {dimensions}")
        flat = np.asarray(buffer).reshape(-1)
        expected = dims[0] * dims[1] * dims[2]
        if flat.size != expected:
            raise ValueError(f"Buffer has {flat.size} samples, expected {expected} for dimensions {dims}.")
        nx, ny, nz = dims
        return cls(data=flat.reshape(nz, ny, nx), **kwargs)

    def with_labelmap(self, labelmap: "Volume", colortable: Optional[ColorTable] = None) -> "Volume":
        """Return a copy of this volume with ``labelmap`` attached as its label layer."""
        attached = replace(
            labelmap,
            is_labelmap=True,
            metadata=dict(labelmap.metadata),
            colortable=colortable if colortable is not None else labelmap.colortable,
        )
        return replace(self, labelmap=attached, metadata=dict(self.metadata))

    # ------------------------------------------------------------------
    # Derived geometry
    # ------------------------------------------------------------------

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        """Voxel counts (nx, ny, nz)."""
        nz, ny, nx = self.data.shape
        return (int(nx), int(ny), int(nz))

    @property
    def max(self) -> float:
        return self.scalar_range[1]

    @property
    def min(self) -> float:
        return self.scalar_range[0]

    @property
    def ras_to_ijk(self) -> np.ndarray:
        return invert_affine(self.ijk_to_ras)

    def _ras_corners(self) -> np.ndarray:
        nx, ny, nz = self.dimensions
        corners = np.array(
            [[i, j, k] for i in (0, nx - 1) for j in (0, ny - 1) for k in (0, nz - 1)],
            dtype=np.float64,
        )
        return transform_point(self.ijk_to_ras, corners)

    @property
    def ras_origin(self) -> np.ndarray:
        return self._ras_corners().min(axis=0)

    @property
    def ras_extent(self) -> np.ndarray:
        corners = self._ras_corners()
        return corners.max(axis=0) - corners.min(axis=0)

    @property
    def ras_center(self) -> np.ndarray:
        return self.ras_origin + self.ras_extent / 2.0

    @property
    def ras_spacing(self) -> np.ndarray:
        return np.abs(self.ijk_to_ras[:3, :3]).max(axis=1)

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_volume(self)

    @property
    def orientation(self) -> np.ndarray:
        return normalize_orientation(self.direction_cosines)[0]

    @property
    def normalized_cosines(self) -> np.ndarray:
        return normalize_orientation(self.direction_cosines)[1]

    @property
    def is_coronal(self) -> bool:
        """True when the k axis was acquired along anterior/posterior."""
        return bool(self.normalized_cosines[2][1] != 0)

    @property
    def has_labelmap(self) -> bool:
        return self.labelmap is not None


# ---------------------------------------------------------------------------
# Reslice outputs
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Slice:
    """One planar slice of a volume, placed in world space."""
    center: np.ndarray
    front: np.ndarray
    up: np.ndarray
    right: np.ndarray
    width: float
    height: float
    texture: Optional[Texture] = None
    labelmap: Optional[Texture] = None
    borders: bool = True
    color: Vector3 = (1.0, 1.0, 1.0)
    visible: bool = False
    axis: Optional[int] = None
    index: Optional[int] = None
    volume: Optional[Volume] = field(default=None, repr=False)


@dataclass(eq=False)
class ResliceResult:
    """
    Per-axis ordered slice stacks produced by one reslice pass.

    ``slices[a]`` is ordered from the acquisition's negative world extreme to
    its positive one. ``ascending[a]`` records whether generation order k
    matches storage order on that axis.
    """
    slices: Tuple[List[Slice], List[Slice], List[Slice]] = field(default_factory=lambda: ([], [], []))
    indices: List[Optional[float]] = field(default_factory=lambda: [None, None, None])
    ascending: List[bool] = field(default_factory=lambda: [True, True, True])
    complete: bool = False

    @property
    def resliced_axes(self) -> Tuple[int, ...]:
        return tuple(a for a in range(3) if self.slices[a])

    def slice_at(self, axis: int, k: int) -> Slice:
        """Slice generated at index ``k`` on ``axis``."""
        stack = self.slices[axis]
        n = len(stack)
        if not 0 <= k < n:
            raise IndexError(f"Slice index {k} out of range for axis {axis} with {n} slices.")
        return stack[k] if self.ascending[axis] else stack[n - 1 - k]

    def textures(self, axis: int) -> List[Texture]:
        return [s.texture for s in self.slices[axis]]

    def stack(self, axis: int) -> np.ndarray:
        """Stored-order textures as an (n, height, width, 4) uint8 array."""
        textures = self.textures(axis)
        if not textures:
            return np.zeros((0, 0, 0, TEXTURE_CHANNELS), dtype=np.uint8)
        return np.stack([t.as_image() for t in textures])


@dataclass(eq=False)
class ObliqueSlice:
    """Resampled image of a volume on an arbitrary plane."""
    texture: Texture
    plane: Plane
    polygon: np.ndarray
    polygon_xy: np.ndarray
    rotation: np.ndarray
    right: np.ndarray
    up: np.ndarray
    center: np.ndarray
    width: float = 0.0
    height: float = 0.0
    pixel_size: float = 1.0
    origin_xy: Tuple[float, float] = (0.0, 0.0)

    @property
    def is_empty(self) -> bool:
        return self.texture.is_empty

    def to_slice(self, volume: Optional[Volume] = None) -> Slice:
        """Placement record for the rendering layer."""
        return Slice(
            center=self.center,
            front=self.plane.normal,
            up=self.up,
            right=self.right,
            width=self.width,
            height=self.height,
            texture=self.texture,
            visible=True,
            volume=volume,
        )


# ---------------------------------------------------------------------------
# Abstract collaborators
# ---------------------------------------------------------------------------

class BaseLoader(ABC):
    """Abstract base class for volume acquisition strategies."""

    @abstractmethod
    def load(self, source: str, callback: Optional[Callable[[int, str], None]] = None) -> Volume:
        """
        Load a volume from a source path.

        Args:
            source (str): Path to file or directory.
            callback: Optional progress callback (percent, message).

        Returns:
            Volume: Loaded volume.
        """
        pass


class BaseResampler(ABC):
    """Abstract base class for volume-to-slice resampling algorithms."""

    @abstractmethod
    def process(self, volume: Volume, callback: Optional[Callable[[int, str], None]] = None, **kwargs) -> Any:
        """
        Resample a volume.

        Args:
            volume (Volume): Input volume.
            callback (Optional[Callable]): Progress callback (percent, message).
            **kwargs: Algorithm specific parameters.
        """
        pass
