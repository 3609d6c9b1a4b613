"""
Resampling processors.

Modules:
- reslice: Axis-aligned multi-planar reslicing
- oblique: Arbitrary-plane resampling
- colors: Scalar -> RGBA colour mapping
"""

from processors.colors import grayscale_levels, grayscale_rgba, colortable_rgba, map_to_rgba
from processors.reslice import AxisAlignedReslicer, reslice_volume, slice_axes, slice_color, slice_stack
from processors.oblique import ObliquePlaneResampler, intersect_plane_box, order_polygon, rotation_to_z

__all__ = [
    'AxisAlignedReslicer',
    'reslice_volume',
    'slice_axes',
    'slice_color',
    'slice_stack',
    'ObliquePlaneResampler',
    'intersect_plane_box',
    'order_polygon',
    'rotation_to_z',
    'grayscale_levels',
    'grayscale_rgba',
    'colortable_rgba',
    'map_to_rgba',
]
