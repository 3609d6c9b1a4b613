"""
Output exporters, keyed by format name.
"""

from exporters.textures import NumpyExporter, TiffExporter
from exporters.vtk import VTKExporter

EXPORTERS = {
    "npy": NumpyExporter,
    "tiff": TiffExporter,
    "vtk": VTKExporter,
}

__all__ = ['NumpyExporter', 'TiffExporter', 'VTKExporter', 'EXPORTERS']
