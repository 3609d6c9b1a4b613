"""
Texture stack exporters (NumPy / TIFF).

Each resliced axis is written as one ``(n, height, width, 4)`` uint8 stack in
stored (world-ascending) order; an oblique slice is one ``(h, w, 4)`` image.
"""

import os
import numpy as np

from core import ObliqueSlice, ResliceResult

_AXIS_NAMES = ("axis0", "axis1", "axis2")


def _stack_path(out_dir: str, axis: int, ext: str) -> str:
    return os.path.join(out_dir, f"slices_{_AXIS_NAMES[axis]}.{ext}")


class NumpyExporter:
    """Saves texture stacks as ``.npy`` arrays."""

    @staticmethod
    def export_reslice(result: ResliceResult, out_dir: str) -> list:
        if result is None:
            raise ValueError("No reslice result to export.")
        paths = []
        for axis in result.resliced_axes:
            path = _stack_path(out_dir, axis, "npy")
            np.save(path, result.stack(axis))
            print(f"[Exporter] {len(result.slices[axis])} slices saved to {path}")
            paths.append(path)
        return paths

    @staticmethod
    def export_oblique(oblique: ObliqueSlice, out_dir: str) -> str:
        if oblique is None or oblique.is_empty:
            raise ValueError("No oblique texture to export.")
        path = os.path.join(out_dir, "oblique.npy")
        np.save(path, oblique.texture.as_image())
        print(f"[Exporter] Oblique texture saved to {path}")
        return path


class TiffExporter:
    """Saves texture stacks as multi-page RGBA TIFF files."""

    @staticmethod
    def _write(path: str, image: np.ndarray) -> None:
        from tifffile import imwrite  # only needed for TIFF output
        imwrite(path, image, photometric="rgb")

    @staticmethod
    def export_reslice(result: ResliceResult, out_dir: str) -> list:
        if result is None:
            raise ValueError("No reslice result to export.")
        paths = []
        for axis in result.resliced_axes:
            path = _stack_path(out_dir, axis, "tif")
            TiffExporter._write(path, result.stack(axis))
            print(f"[Exporter] {len(result.slices[axis])} slices saved to {path}")
            paths.append(path)
        return paths

    @staticmethod
    def export_oblique(oblique: ObliqueSlice, out_dir: str) -> str:
        if oblique is None or oblique.is_empty:
            raise ValueError("No oblique texture to export.")
        path = os.path.join(out_dir, "oblique.tif")
        TiffExporter._write(path, oblique.texture.as_image())
        print(f"[Exporter] Oblique texture saved to {path}")
        return path
