"""
VTK format exporter for slice textures.
"""

import os
import numpy as np
import pyvista as pv

from core import ObliqueSlice, ResliceResult
from core.coordinates import invert_rigid, transform_point
from config import TEXTURE_CHANNELS


class VTKExporter:
    """
    Exports reslice output to VTK standard format files.
    Handles .vti (Image Data) for axis stacks and .vts (Structured Grid) for
    oblique planes placed in world space.
    """

    @staticmethod
    def export_reslice(result: ResliceResult, out_dir: str) -> list:
        if result is None:
            raise ValueError("No reslice result to export.")
        paths = []
        for axis in result.resliced_axes:
            path = os.path.join(out_dir, f"slices_axis{axis}.vti")
            VTKExporter._export_stack(result, axis, path)
            paths.append(path)
        return paths

    @staticmethod
    def _export_stack(result: ResliceResult, axis: int, filepath: str) -> bool:
        """Export one axis as an image whose z index is the stored slice order."""
        stack = result.stack(axis)
        n, h, w = stack.shape[:3]
        slices = result.slices[axis]
        first = slices[0]

        grid = pv.ImageData()
        grid.dimensions = (w, h, n)
        grid.spacing = (
            first.width / w if w else 1.0,
            first.height / h if h else 1.0,
            float(np.linalg.norm(slices[1].center - first.center)) if n > 1 else 1.0,
        )
        grid.point_data["rgba"] = np.ascontiguousarray(stack.reshape(-1, TEXTURE_CHANNELS))
        grid.save(filepath)
        print(f"[Exporter] Axis {axis} stack saved to {filepath}")
        return True

    @staticmethod
    def export_oblique(oblique: ObliqueSlice, out_dir: str) -> str:
        path = os.path.join(out_dir, "oblique.vts")
        VTKExporter._export_plane(oblique, path)
        return path

    @staticmethod
    def _export_plane(oblique: ObliqueSlice, filepath: str) -> bool:
        """Export the oblique texture on a world-space structured plane."""
        if oblique is None or oblique.is_empty:
            raise ValueError("No oblique texture to export.")
        tex = oblique.texture
        step = oblique.pixel_size
        wmin, hmin = oblique.origin_xy
        u = wmin + np.arange(tex.width, dtype=np.float64) * step
        v = hmin + np.arange(tex.height, dtype=np.float64) * step
        vv, uu = np.meshgrid(v, u, indexing="ij")
        local = np.stack([uu.ravel(), vv.ravel(), np.full(uu.size, oblique.plane.offset)], axis=1)
        points = transform_point(invert_rigid(oblique.rotation), local)

        grid = pv.StructuredGrid()
        grid.points = points
        grid.dimensions = (tex.width, tex.height, 1)
        grid.point_data["rgba"] = tex.data.reshape(-1, TEXTURE_CHANNELS)
        grid.save(filepath)
        print(f"[Exporter] Oblique plane saved to {filepath}")
        return True
