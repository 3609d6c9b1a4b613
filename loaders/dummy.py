"""
Synthetic volume generators for testing.
"""

import colorsys
import numpy as np
import scipy.ndimage as ndimage
from typing import Optional, Callable, Sequence

from config import DUMMY_VOLUME_SIZE
from core import BaseLoader, ColorTable, Volume
from core.coordinates import ijk_to_ras_matrix


def linear_ramp_volume(
    dimensions: Sequence[int] = (4, 4, 4),
    spacing: Sequence[float] = (1.0, 1.0, 1.0),
    origin: Sequence[float] = (0.0, 0.0, 0.0),
    direction_cosines=None,
) -> Volume:
    """Volume whose voxel values equal their linear buffer index (i fastest)."""
    nx, ny, nz = (int(d) for d in dimensions)
    buffer = np.arange(nx * ny * nz, dtype=np.float32)
    return Volume.from_buffer(
        buffer,
        (nx, ny, nz),
        spacing=tuple(spacing),
        ijk_to_ras=ijk_to_ras_matrix(spacing, origin, direction_cosines),
        direction_cosines=direction_cosines,
        metadata={"Type": "Synthetic", "Description": "Linear index ramp"},
    )


def label_colortable(n_labels: int) -> ColorTable:
    """Evenly spaced hues for labels 1..n; label 0 is transparent background."""
    table = ColorTable()
    table.add(0, 0, 0.0, 0.0, 0.0, 0.0)
    for label in range(1, n_labels + 1):
        r, g, b = colorsys.hsv_to_rgb((label - 1) / max(1, n_labels), 0.8, 1.0)
        table.add(label, label, r, g, b, 1.0)
    return table


class DummyLoader(BaseLoader):
    """Synthetic phantom: intensity gradient block with spherical inclusions."""

    def load(
        self,
        size: int = DUMMY_VOLUME_SIZE,
        callback: Optional[Callable[[int, str], None]] = None,
        spacing: Sequence[float] = (1.0, 1.0, 1.0),
        seed: Optional[int] = None,
        with_labelmap: bool = True,
    ) -> Volume:
        print(f"[Loader] Generating synthetic phantom with random spheres (size={size})...")
        rng = np.random.default_rng(seed)
        if callback:
            callback(0, "Initializing background gradient...")

        # 1) Background: smooth gradient along z so every axis shows structure.
        zz, yy, xx = np.ogrid[0:size, 0:size, 0:size]
        volume = (100.0 + 400.0 * zz / max(1, size - 1)) * np.ones((1, size, size))
        volume = volume.astype(np.float32)

        # 2) Bright spherical inclusions away from the border.
        border = max(1, min(5, int(size) // 8))
        interior = max(1, size - 2 * border)
        min_radius = max(1, interior // 16)
        max_radius = max(min_radius, interior // 6)
        n_spheres = max(3, min(24, interior // 4))

        if callback:
            callback(20, "Placing spherical inclusions...")

        mask = np.zeros(volume.shape, dtype=bool)
        for i in range(n_spheres):
            radius = int(rng.integers(min_radius, max_radius + 1))
            low = border + radius
            high = size - border - radius - 1
            if low > high:
                continue
            cz, cy, cx = (int(rng.integers(low, high + 1)) for _ in range(3))
            sphere = (zz - cz) ** 2 + (yy - cy) ** 2 + (xx - cx) ** 2 <= radius ** 2
            volume[sphere] = float(rng.uniform(800.0, 1000.0))
            mask |= sphere
            if callback and i % 4 == 0:
                callback(20 + int(50 * (i + 1) / n_spheres), f"Placing spheres ({i + 1}/{n_spheres})...")

        if not mask.any():
            # Fallback for very small volumes: one center sphere.
            radius = max(1, size // 4)
            c = size // 2
            mask = (zz - c) ** 2 + (yy - c) ** 2 + (xx - c) ** 2 <= radius ** 2
            volume[mask] = 1000.0

        metadata = {
            "Type": "Synthetic",
            "Description": "Gradient block with spherical inclusions",
            "GenerationMethod": "Random Sphere Insertion",
        }
        vol = Volume(data=volume, spacing=tuple(spacing), metadata=metadata)

        if with_labelmap:
            if callback:
                callback(80, "Labeling connected inclusions...")
            labels, n_labels = ndimage.label(mask)
            labelmap = Volume(
                data=labels.astype(np.int32),
                spacing=tuple(spacing),
                metadata={"Type": "Synthetic Labelmap", "LabelCount": int(n_labels)},
            )
            vol = vol.with_labelmap(labelmap, label_colortable(n_labels))
            vol.metadata["LabelCount"] = int(n_labels)

        if callback:
            callback(100, "Generation complete.")
        return vol
