"""
Headerless raw volume loader and typed, endianness-aware byte decoding.
"""

import os
import sys
import numpy as np
from typing import Callable, Optional, Sequence, Union

from core import BaseLoader, Volume
from core.coordinates import ijk_to_ras_matrix
from core.orientation import RAS_POSITIVE_LABELS, classify_acquisition, point_to_ras, to_ras


# Scalar type names -> numpy kind/size codes
SCALAR_TYPES = {
    'uchar': 'u1',
    'schar': 'i1',
    'ushort': 'u2',
    'sshort': 'i2',
    'uint': 'u4',
    'sint': 'i4',
    'float': 'f4',
    'double': 'f8',
}


def scalar_dtype(type_name: str, little_endian: bool = True) -> np.dtype:
    """numpy dtype for a scalar type name with the given byte order."""
    try:
        code = SCALAR_TYPES[type_name]
    except KeyError:
        raise ValueError(f"Unknown scalar type '{type_name}'. Expected one of: {', '.join(SCALAR_TYPES)}")
    return np.dtype(('<' if little_endian else '>') + code)


def flip_endianness(array: np.ndarray) -> np.ndarray:
    """Reverse the bytes of every element in place; the dtype is unchanged, so values are reinterpreted."""
    return array.byteswap(inplace=True)


class ByteStreamReader:
    """Sequential typed reads from a byte buffer."""

    def __init__(self, data: bytes, little_endian: bool = True):
        self._data = memoryview(data)
        self.pointer = 0
        self.little_endian = little_endian

    def __len__(self) -> int:
        return len(self._data)

    def jump_to(self, position: int) -> None:
        if not 0 <= position <= len(self._data):
            raise ValueError(f"Position {position} outside buffer of {len(self._data)} bytes")
        self.pointer = position

    def scan(self, type_name: str, chunks: int = 1) -> Union[np.ndarray, int, float]:
        """
        Read ``chunks`` scalars of ``type_name`` and advance the pointer.

        A single chunk returns a Python scalar, otherwise a native-endian array.
        """
        native_little = sys.byteorder == "little"
        dtype = scalar_dtype(type_name, native_little)
        nbytes = dtype.itemsize * int(chunks)
        if self.pointer + nbytes > len(self._data):
            raise ValueError(
                f"Cannot read {chunks} x {type_name} at offset {self.pointer}: "
                f"buffer has {len(self._data)} bytes"
            )
        values = np.frombuffer(self._data, dtype=dtype, count=int(chunks), offset=self.pointer).copy()
        self.pointer += nbytes
        if self.little_endian != native_little:
            flip_endianness(values)
        if chunks == 1:
            return values[0].item()
        return values


class RawVolumeLoader(BaseLoader):
    """Loads a headerless scalar buffer with externally supplied geometry."""

    def __init__(
        self,
        dimensions: Sequence[int],
        dtype: str = 'ushort',
        spacing: Sequence[float] = (1.0, 1.0, 1.0),
        little_endian: bool = True,
        header_offset: int = 0,
        space: Sequence[str] = RAS_POSITIVE_LABELS,
        origin: Sequence[float] = (0.0, 0.0, 0.0),
        direction_cosines: Optional[Sequence[float]] = None,
    ):
        self.dimensions = tuple(int(d) for d in dimensions)
        if len(self.dimensions) != 3 or any(d <= 0 for d in self.dimensions):
            raise ValueError(f"Dimensions must be three positive integers, got {dimensions}")
        scalar_dtype(dtype)
        self.dtype = dtype
        self.spacing = tuple(float(s) for s in spacing)
        self.little_endian = little_endian
        self.header_offset = int(header_offset)
        self.space = tuple(space)
        self.origin = tuple(float(v) for v in origin)
        self.direction_cosines = (
            np.eye(3).reshape(9) if direction_cosines is None
            else np.asarray(direction_cosines, dtype=np.float64).reshape(9)
        )

    def load(self, source: str, callback: Optional[Callable[[int, str], None]] = None) -> Volume:
        if not os.path.exists(source):
            raise FileNotFoundError(f"Path does not exist: {source}")
        print(f"[Loader] Reading raw {self.dtype} volume {self.dimensions} from {source}...")
        if callback:
            callback(0, "Reading raw buffer...")
        with open(source, 'rb') as fh:
            data = fh.read()
        volume = self.load_bytes(data, callback=callback)
        volume.metadata['Source'] = source
        return volume

    def load_bytes(self, data: bytes, callback: Optional[Callable[[int, str], None]] = None) -> Volume:
        reader = ByteStreamReader(data, little_endian=self.little_endian)
        reader.jump_to(self.header_offset)
        nx, ny, nz = self.dimensions
        buffer = reader.scan(self.dtype, nx * ny * nz)
        if callback:
            callback(60, "Building voxel-to-world transform...")

        cosines = to_ras(self.space, self.direction_cosines).reshape(3, 3)
        ijk_to_ras = ijk_to_ras_matrix(
            self.spacing,
            point_to_ras(self.space, self.origin),
            cosines,
        )
        volume = Volume.from_buffer(
            np.atleast_1d(buffer),
            self.dimensions,
            spacing=self.spacing,
            ijk_to_ras=ijk_to_ras,
            direction_cosines=cosines,
            metadata={
                "Type": "Raw",
                "ScalarType": self.dtype,
                "LittleEndian": self.little_endian,
            },
        )
        volume.metadata["Acquisition"] = classify_acquisition(volume.normalized_cosines)
        if callback:
            callback(100, "Raw volume loaded.")
        return volume
