"""
Axis-aligned multi-planar reslicing.

Walks a volume along each of its three voxel axes and produces ordered
slice stacks with nearest-voxel RGBA textures. Slices align exactly with
voxel layers, so no interpolation takes place.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from collections import deque
from typing import Callable, List, Optional, Tuple

import numpy as np

from config import (
    RESLICE_FULL,
    RESLICE_MAX_WORKERS,
    SLICE_COLOR_AXIAL,
    SLICE_COLOR_CORONAL,
    SLICE_COLOR_SAGITTAL,
)
from core.base import BaseResampler, ResliceResult, Slice, Texture, Volume
from core.orientation import is_axis_permutation
from processors.colors import map_to_rgba

logger = logging.getLogger(__name__)

# (z, y, x) -> (k, j, i) for slice axes 0, 1, 2
_STACK_AXES = ((0, 1, 2), (2, 0, 1), (1, 2, 0))


def slice_axes(axis: int) -> Tuple[int, int, int]:
    """In-plane axes (a, b) and through-plane axis c for a reslice axis."""
    return axis, (axis + 1) % 3, (axis + 2) % 3


def slice_stack(data: np.ndarray, axis: int) -> np.ndarray:
    """
    View a (z, y, x) voxel array as the (k, j, i) slice stack of ``axis``.

    Slice-local (i, j, k) addresses voxel (x, y, z) as:
    axis 0 -> (i, j, k), axis 1 -> (k, i, j), axis 2 -> (j, k, i).
    """
    return np.transpose(data, _STACK_AXES[axis])


def slice_color(front) -> Tuple[float, float, float]:
    if front[2] != 0:
        return SLICE_COLOR_AXIAL
    if front[1] != 0:
        return SLICE_COLOR_CORONAL
    return SLICE_COLOR_SAGITTAL


class AxisAlignedReslicer(BaseResampler):
    """
    Builds the tri-planar slice stacks of a volume.

    A volume carrying a label map needs the label map's own ResliceResult;
    its textures are attached to the matching slices as a second layer.
    """

    def __init__(self, full_reslice: bool = RESLICE_FULL, max_workers: int = RESLICE_MAX_WORKERS):
        self.full_reslice = full_reslice
        self.max_workers = max_workers

    def process(
        self,
        volume: Volume,
        callback: Optional[Callable[[int, str], None]] = None,
        labelmap_result: Optional[ResliceResult] = None,
        full_reslice: Optional[bool] = None,
        max_workers: Optional[int] = None,
    ) -> ResliceResult:
        """
        Reslice ``volume`` along its voxel axes.

        Args:
            volume: Volume to reslice.
            callback: Progress callback (percent, message).
            labelmap_result: Reslice output of ``volume.labelmap``.
            full_reslice: False stops after axis 0.
            max_workers: >1 reslices the axes concurrently.

        Returns:
            ResliceResult with one ordered slice stack per resliced axis.
        """
        full = self.full_reslice if full_reslice is None else bool(full_reslice)
        workers = self.max_workers if max_workers is None else int(max_workers)
        axes = (0, 1, 2) if full else (0,)

        self._validate(volume, labelmap_result, axes)

        def report(p: int, msg: str) -> None:
            logger.debug("[Reslice] %s", msg)
            if callback:
                callback(p, msg)

        t_start = time.perf_counter()
        result = ResliceResult(complete=full)
        report(0, f"Reslicing {len(axes)} axis(es) of volume {volume.dimensions}...")

        if workers > 1 and len(axes) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=min(workers, len(axes))) as pool:
                futures = {
                    pool.submit(self._reslice_axis, volume, axis, labelmap_result): axis
                    for axis in axes
                }
                done = 0
                for future in concurrent.futures.as_completed(futures):
                    self._store(result, futures[future], *future.result())
                    done += 1
                    report(int(100 * done / len(axes)), f"Axis {futures[future]} resliced")
        else:
            for done, axis in enumerate(axes, start=1):
                self._store(result, axis, *self._reslice_axis(volume, axis, labelmap_result))
                report(int(100 * done / len(axes)), f"Axis {axis} resliced")

        logger.info(
            "Resliced %s into %s slices in %.3fs",
            volume.dimensions,
            [len(s) for s in result.slices],
            time.perf_counter() - t_start,
        )
        return result

    @staticmethod
    def _validate(volume: Volume, labelmap_result: Optional[ResliceResult], axes: Tuple[int, ...]) -> None:
        if volume is None:
            raise ValueError("No volume to reslice.")
        dims = volume.dimensions

        if volume.labelmap is not None:
            if labelmap_result is None:
                raise ValueError("Volume has a label map: reslice the label map first and pass labelmap_result.")
            for axis in axes:
                expected = dims[slice_axes(axis)[2]]
                found = len(labelmap_result.slices[axis])
                if found != expected:
                    raise ValueError(
                        f"Label map reslice has {found} slices on axis {axis}, expected {expected}."
                    )
        elif labelmap_result is not None:
            logger.warning("labelmap_result given for a volume without a label map; ignoring it.")

        if not is_axis_permutation(volume.normalized_cosines):
            logger.warning(
                "Direction cosines %s do not snap to distinct axes; slice stacks may overlap.",
                volume.direction_cosines.tolist(),
            )

    @staticmethod
    def _store(result: ResliceResult, axis: int, slices: List[Slice], half: float, ascending: bool) -> None:
        result.slices[axis].extend(slices)
        result.indices[axis] = half
        result.ascending[axis] = ascending

    @staticmethod
    def _reslice_axis(
        volume: Volume,
        axis: int,
        labelmap_result: Optional[ResliceResult],
    ) -> Tuple[List[Slice], float, bool]:
        t_axis = time.perf_counter()
        a, b, c = slice_axes(axis)
        dims = volume.dimensions
        spacing = volume.spacing
        norm = volume.normalized_cosines.astype(np.float64)

        imax, jmax, kmax = dims[a], dims[b], dims[c]
        half = (kmax - 1) / 2.0
        right, up, front = norm[a], norm[b], norm[c]
        color = slice_color(front)

        width = imax * spacing[a]
        height = jmax * spacing[b]
        if volume.is_coronal:
            width, height = height, width

        # A label map attached to a parent shares the parent's borders.
        borders = not (volume.is_labelmap and volume.labelmap is None)
        ascending = bool(volume.orientation[c] > 0)
        attach_labels = volume.labelmap is not None and labelmap_result is not None

        rgba = map_to_rgba(slice_stack(volume.data, axis), volume.max, volume.colortable)
        ras_center = volume.ras_center

        stack: deque = deque()
        for k in range(kmax):
            position = (k - half) * spacing[c]
            slice_ = Slice(
                center=ras_center + front * position,
                front=front,
                up=up,
                right=right,
                width=width,
                height=height,
                texture=Texture(width=imax, height=jmax, data=rgba[k]),
                borders=borders,
                color=color,
                visible=False,
                axis=axis,
                index=k,
                volume=volume,
            )
            if attach_labels:
                slice_.labelmap = labelmap_result.slice_at(axis, k).texture
            if ascending:
                stack.append(slice_)
            else:
                stack.appendleft(slice_)

        logger.debug("Axis %d: %d slices of %dx%d in %.3fs", axis, kmax, imax, jmax, time.perf_counter() - t_axis)
        return list(stack), half, ascending


def reslice_volume(
    volume: Volume,
    callback: Optional[Callable[[int, str], None]] = None,
    full_reslice: bool = RESLICE_FULL,
    max_workers: int = RESLICE_MAX_WORKERS,
) -> Tuple[ResliceResult, Optional[ResliceResult]]:
    """
    Reslice a volume and, first, its label map.

    Returns:
        (volume_result, labelmap_result); labelmap_result is None without a label map.
    """
    reslicer = AxisAlignedReslicer(full_reslice=full_reslice, max_workers=max_workers)
    labelmap_result = None
    if volume.labelmap is not None:
        labelmap_result = reslicer.process(volume.labelmap)
    return reslicer.process(volume, callback=callback, labelmap_result=labelmap_result), labelmap_result


__all__ = ["AxisAlignedReslicer", "reslice_volume", "slice_stack", "slice_axes", "slice_color"]
