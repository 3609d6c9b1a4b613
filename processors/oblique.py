"""
Oblique plane resampling.

Intersects an arbitrary cutting plane with the volume's world bounding box,
rotates the intersection polygon into a plane-local XY frame and resamples
the volume on a regular grid covering that polygon.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional, Sequence

import numpy as np

from config import EPSILON, OBLIQUE_DEFAULT_NORMAL, OBLIQUE_PIXEL_SIZE, TEXTURE_CHANNELS
from core.base import BaseResampler, BoundingBox, ObliqueSlice, Plane, Texture, Volume
from core.coordinates import (
    cross,
    identity4,
    invert_rigid,
    magnitude,
    mat_mul,
    normalize,
    transform_point,
    transform_vector,
)
from processors.colors import grayscale_rgba

logger = logging.getLogger(__name__)


def rotation_to_z(normal: Sequence[float]) -> np.ndarray:
    """
    Minimal rotation taking ``normal`` onto +Z, as a 4x4 matrix.

    Built from the quaternion of angle acos(n . z) about normalize(n x z).
    A normal parallel to +Z gives the identity; one anti-parallel to Z gives
    a half-turn about X.
    """
    v = normalize(normal)
    axis = cross(v, (0.0, 0.0, 1.0))
    if magnitude(axis) < EPSILON:
        m = identity4()
        if v[2] < 0:
            m[1, 1] = -1.0
            m[2, 2] = -1.0
        return m

    r = axis / magnitude(axis)
    theta = math.acos(max(-1.0, min(1.0, float(v[2]))))
    a = math.cos(theta / 2)
    b, c, d = (math.sin(theta / 2) * r).tolist()

    m = identity4()
    m[0, :3] = (a * a + b * b - c * c - d * d, 2 * (b * c - a * d), 2 * (b * d + a * c))
    m[1, :3] = (2 * (b * c + a * d), a * a + c * c - b * b - d * d, 2 * (c * d - a * b))
    m[2, :3] = (2 * (b * d - a * c), 2 * (c * d + a * b), a * a + d * d - c * c - b * b)
    return m


def _merge_duplicates(points: list, tolerance: float) -> np.ndarray:
    unique: list = []
    for p in points:
        if all(np.max(np.abs(p - q)) > tolerance for q in unique):
            unique.append(p)
    return np.array(unique, dtype=np.float64).reshape(-1, 3)


def order_polygon(points: np.ndarray, normal: Sequence[float]) -> np.ndarray:
    """Order coplanar points counter-clockwise around their centroid, seen from +normal."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(pts) < 3:
        return pts
    xy = transform_point(rotation_to_z(normal), pts)[:, :2]
    centroid = xy.mean(axis=0)
    angles = np.arctan2(xy[:, 1] - centroid[1], xy[:, 0] - centroid[0])
    return pts[np.argsort(angles, kind="stable")]


def intersect_plane_box(plane: Plane, box: BoundingBox) -> np.ndarray:
    """
    Intersect a plane with the 12 edges of a box.

    Each edge is fixed on two axes and free on the third; the plane equation
    is solved for the free coordinate and kept when it lies on the edge.
    Edges parallel to the plane are skipped.

    Returns:
        (N, 3) ordered polygon vertices, N in {0, 3, 4, 5, 6} for a proper
        cut (fewer when the plane only grazes an edge or a corner).
    """
    b = box.bounds
    n = plane.normal
    o = plane.origin
    scale = max(1.0, max(abs(v) for v in b))
    tolerance = EPSILON * scale

    solutions = []
    for face in range(6):
        fixed = face // 2
        second = (fixed + 1) % 3
        free = (fixed + 2) % 3
        free_lo, free_hi = box.axis_range(free)
        if abs(n[free]) < EPSILON:
            continue
        for j in range(2):
            second_value = b[2 * second + j]
            solution = -(
                n[fixed] * (b[face] - o[fixed]) + n[second] * (second_value - o[second])
            ) / n[free] + o[free]
            if free_lo - tolerance <= solution <= free_hi + tolerance:
                point = np.empty(3, dtype=np.float64)
                point[fixed] = b[face]
                point[second] = second_value
                point[free] = min(max(solution, free_lo), free_hi)
                solutions.append(point)

    return order_polygon(_merge_duplicates(solutions, tolerance), n)


class ObliquePlaneResampler(BaseResampler):
    """
    Resamples a volume onto one arbitrary plane (grayscale, nearest voxel).

    Intended for on-demand single-plane previews; every output pixel costs
    one affine transform and a bounds test.
    """

    def __init__(self, pixel_size: float = OBLIQUE_PIXEL_SIZE):
        self.pixel_size = pixel_size

    def process(
        self,
        volume: Volume,
        callback: Optional[Callable[[int, str], None]] = None,
        plane: Optional[Plane] = None,
        origin: Optional[Sequence[float]] = None,
        normal: Optional[Sequence[float]] = None,
        pixel_size: Optional[float] = None,
    ) -> ObliqueSlice:
        """
        Resample ``volume`` on a plane.

        Args:
            volume: Volume to sample.
            callback: Progress callback (percent, message).
            plane: Cutting plane; built from ``origin``/``normal`` when omitted.
            origin: Plane origin in world space (default: volume RAS center).
            normal: Plane normal (default: +Z).
            pixel_size: Physical size of one output pixel.

        Returns:
            ObliqueSlice; empty when the plane misses the volume.
        """
        if volume is None:
            raise ValueError("No volume to resample.")
        step = float(self.pixel_size if pixel_size is None else pixel_size)
        if not math.isfinite(step) or step <= 0:
            raise ValueError(f"Pixel size must be positive, got {pixel_size}")
        if plane is None:
            plane = Plane(
                origin=volume.ras_center if origin is None else origin,
                normal=OBLIQUE_DEFAULT_NORMAL if normal is None else normal,
            )

        def report(p: int, msg: str) -> None:
            logger.debug("[Oblique] %s", msg)
            if callback:
                callback(p, msg)

        t_start = time.perf_counter()
        report(0, "Intersecting plane with volume bounds...")
        polygon = intersect_plane_box(plane, volume.bounding_box)
        rotation = rotation_to_z(plane.normal)
        inverse = invert_rigid(rotation)
        right = transform_vector(inverse, (1.0, 0.0, 0.0))
        up = transform_vector(inverse, (0.0, 1.0, 0.0))

        if len(polygon) < 3:
            logger.warning("Plane (origin=%s, normal=%s) does not cut the volume.",
                           plane.origin.tolist(), plane.normal.tolist())
            report(100, "No intersection.")
            return ObliqueSlice(
                texture=Texture(width=0, height=0, data=np.zeros(0, dtype=np.uint8)),
                plane=plane,
                polygon=polygon,
                polygon_xy=np.zeros((0, 3)),
                rotation=rotation,
                right=right,
                up=up,
                center=plane.origin.copy(),
                pixel_size=step,
            )

        polygon_xy = transform_point(rotation, polygon)
        xmin, ymin = polygon_xy[:, :2].min(axis=0)
        xmax, ymax = polygon_xy[:, :2].max(axis=0)
        plane_z = plane.offset

        wmin, wmax = math.floor(xmin), math.ceil(xmax)
        hmin, hmax = math.floor(ymin), math.ceil(ymax)
        width_px = int(math.ceil((wmax - wmin) / step))
        height_px = int(math.ceil((hmax - hmin) / step))
        report(20, f"Sampling {width_px}x{height_px} grid...")

        rgba = self._sample(volume, inverse, wmin, hmin, plane_z, width_px, height_px, step)

        width = width_px * step
        height = height_px * step
        center = transform_point(inverse, (wmin + width / 2.0, hmin + height / 2.0, plane_z))

        logger.info("Oblique slice %dx%d resampled in %.3fs", width_px, height_px, time.perf_counter() - t_start)
        report(100, "Oblique resampling complete.")
        return ObliqueSlice(
            texture=Texture(width=width_px, height=height_px, data=rgba),
            plane=plane,
            polygon=polygon,
            polygon_xy=polygon_xy,
            rotation=rotation,
            right=right,
            up=up,
            center=center,
            width=width,
            height=height,
            pixel_size=step,
            origin_xy=(float(wmin), float(hmin)),
        )

    @staticmethod
    def _sample(
        volume: Volume,
        plane_to_ras: np.ndarray,
        wmin: float,
        hmin: float,
        plane_z: float,
        width_px: int,
        height_px: int,
        step: float,
    ) -> np.ndarray:
        """RGBA for every grid pixel, row-major with v (height) as the slow axis."""
        count = width_px * height_px
        rgba = np.zeros((count, TEXTURE_CHANNELS), dtype=np.uint8)
        if count == 0:
            return rgba

        u = wmin + np.arange(width_px, dtype=np.float64) * step
        v = hmin + np.arange(height_px, dtype=np.float64) * step
        vv, uu = np.meshgrid(v, u, indexing="ij")
        points = np.stack([uu.ravel(), vv.ravel(), np.full(count, plane_z)], axis=1)

        plane_to_ijk = mat_mul(volume.ras_to_ijk, plane_to_ras)
        ijk = transform_point(plane_to_ijk, points)
        dims = np.asarray(volume.dimensions, dtype=np.float64)
        inside = np.all((ijk >= 0) & (ijk < dims), axis=1)

        index = np.floor(ijk[inside]).astype(np.int64)
        values = volume.data[index[:, 2], index[:, 1], index[:, 0]]
        rgba[inside] = grayscale_rgba(values, volume.max)

        # Transparent coverage gradient marks pixels outside the volume.
        outside = np.flatnonzero(~inside)
        rgba[outside, 0] = (255.0 * outside / count).astype(np.uint8)
        rgba[outside, 1] = 255
        rgba[outside, 2] = 0
        rgba[outside, 3] = 0
        return rgba


__all__ = ["ObliquePlaneResampler", "intersect_plane_box", "order_polygon", "rotation_to_z"]
