"""
Data loaders package.
"""

from loaders.raw import ByteStreamReader, RawVolumeLoader, SCALAR_TYPES, scalar_dtype, flip_endianness
from loaders.dicom import DicomSeriesLoader
from loaders.dummy import DummyLoader, linear_ramp_volume, label_colortable
from loaders.colortable import ColorTableLoader, parse_colortable

__all__ = [
    'ByteStreamReader',
    'RawVolumeLoader',
    'SCALAR_TYPES',
    'scalar_dtype',
    'flip_endianness',
    'DicomSeriesLoader',
    'DummyLoader',
    'linear_ramp_volume',
    'label_colortable',
    'ColorTableLoader',
    'parse_colortable',
]
