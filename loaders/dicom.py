"""
DICOM series loader.

Reads a folder of single-frame slices in parallel, orders them along the
slice normal and builds the voxel-to-RAS transform from the patient
position/orientation headers (DICOM patient space is LPS).
"""

import os
import re
import numpy as np
import pydicom
from pydicom.errors import InvalidDicomError
import concurrent.futures
from glob import glob
from typing import List, Tuple, Optional, Callable

from core import BaseLoader, Volume
from core.coordinates import cross, ijk_to_ras_matrix, normalize
from core.orientation import LPS_LABELS, classify_acquisition, point_to_ras, to_ras
from config import LOADER_MAX_WORKERS


def _natural_sort_key(text: str):
    """Natural sorting key for filenames like img_1, img_2, ..., img_10"""
    return [int(c) if c.isdigit() else c.lower() for c in re.split(r'(\d+)', text)]


def _validate_path(folder_path: str) -> None:
    """Validate folder path exists."""
    if not os.path.exists(folder_path):
        raise FileNotFoundError(f"Path does not exist: {folder_path}")


def _apply_rescale(arr: np.ndarray, ds) -> np.ndarray:
    """
    Apply DICOM rescale slope and intercept to pixel array (in-place).

    Args:
        arr: Pixel array (float32)
        ds: DICOM dataset with RescaleSlope/RescaleIntercept
    """
    slope = float(getattr(ds, 'RescaleSlope', 1.0))
    intercept = float(getattr(ds, 'RescaleIntercept', 0.0))
    if slope != 1.0:
        arr *= slope
    if intercept != 0.0:
        arr += intercept
    return arr


def _find_dicom_files(folder_path: str) -> List[str]:
    """Find DICOM files in folder, checking extension first then content."""
    files = glob(os.path.join(folder_path, "*.dcm"))
    if not files:
        files = []
        for f in glob(os.path.join(folder_path, "*")):
            if not os.path.isfile(f):
                continue
            try:
                pydicom.dcmread(f, stop_before_pixels=True)
            except (InvalidDicomError, OSError):
                continue
            files.append(f)
    if not files:
        raise FileNotFoundError(f"No valid DICOM files found in {folder_path}")
    return files


def _orientation_rows(ds) -> np.ndarray:
    """Row, column and slice-normal directions (LPS) as a 3x3 row matrix."""
    iop = getattr(ds, 'ImageOrientationPatient', None)
    if iop is None:
        return np.eye(3)
    row = normalize([float(v) for v in iop[:3]])
    col = normalize([float(v) for v in iop[3:6]])
    return np.vstack([row, col, normalize(cross(row, col))])


def _position(ds) -> np.ndarray:
    return np.asarray([float(v) for v in getattr(ds, 'ImagePositionPatient', (0.0, 0.0, 0.0))])


def _slice_spacing(slices: List, normal: np.ndarray) -> float:
    """Distance between the first two slices along the normal, else SliceThickness."""
    if len(slices) > 1 and all(hasattr(s, 'ImagePositionPatient') for s in slices[:2]):
        step = abs(float(np.dot(_position(slices[1]) - _position(slices[0]), normal)))
        if step > 0:
            return step
    return float(getattr(slices[0], 'SliceThickness', 1.0) or 1.0)


def _extract_metadata(ds, slice_count: int) -> dict:
    return {
        "Type": "DICOM",
        "SampleID": getattr(ds, "PatientID", "Unknown Sample"),
        "ScanType": getattr(ds, "Modality", "CT"),
        "Description": getattr(ds, "StudyDescription", "No Description"),
        "SliceCount": slice_count,
        "SortMethod": "Header" if hasattr(ds, 'ImagePositionPatient') else "Filename",
    }


class DicomSeriesLoader(BaseLoader):
    """Loads a DICOM series folder into a RAS-registered Volume.

    - Filename-based natural sorting, refined by position along the slice normal
    - Parallel file reading using ThreadPoolExecutor
    - Rescale slope/intercept applied per slice
    """

    def __init__(self, max_workers: int = LOADER_MAX_WORKERS):
        self.max_workers = max_workers

    def load(self, folder_path: str, callback: Optional[Callable[[int, str], None]] = None) -> Volume:
        print(f"[Loader] Scanning DICOM folder: {folder_path} ...")
        if callback: callback(0, "Scanning directory...")

        _validate_path(folder_path)
        files = _find_dicom_files(folder_path)
        files.sort(key=lambda f: _natural_sort_key(os.path.basename(f)))

        if callback: callback(10, f"Reading {len(files)} slices...")
        slices = self._parallel_read_files(files, callback)
        if not slices:
            raise ValueError("No valid DICOM slices loaded.")

        rows = _orientation_rows(slices[0])
        slices = self._sort_along_normal(slices, rows[2])

        if callback: callback(50, "Building 3D volume...")
        data = self._stack_pixels(slices, callback)

        pixel_spacing = getattr(slices[0], 'PixelSpacing', (1.0, 1.0))
        # PixelSpacing is (between rows, between columns) -> (y, x).
        spacing = (float(pixel_spacing[1]), float(pixel_spacing[0]), _slice_spacing(slices, rows[2]))

        cosines = to_ras(LPS_LABELS, rows).reshape(3, 3)
        origin = point_to_ras(LPS_LABELS, _position(slices[0]))
        ijk_to_ras = ijk_to_ras_matrix(spacing, origin, cosines)

        volume = Volume(
            data=data,
            spacing=spacing,
            ijk_to_ras=ijk_to_ras,
            direction_cosines=cosines,
            metadata=_extract_metadata(slices[0], len(slices)),
        )
        volume.metadata["Acquisition"] = classify_acquisition(volume.normalized_cosines)
        print(f"[Loader] Loading complete: {volume.dimensions}, Voxel Spacing: {spacing}")
        if callback: callback(100, "Loading complete.")
        return volume

    @staticmethod
    def _sort_along_normal(slices: List, normal: np.ndarray) -> List:
        if len(slices) > 1 and all(hasattr(s, 'ImagePositionPatient') for s in slices):
            slices.sort(key=lambda s: float(np.dot(_position(s), normal)))
            first = float(np.dot(_position(slices[0]), normal))
            last = float(np.dot(_position(slices[-1]), normal))
            print(f"[Loader] Sorted along slice normal: {first:.2f} -> {last:.2f}")
        return slices

    def _parallel_read_files(self, files: List[str],
                             callback: Optional[Callable] = None) -> List[pydicom.dataset.FileDataset]:
        """Parallel DICOM file reading using ThreadPoolExecutor."""
        def read_single(args) -> Tuple[int, Optional[pydicom.dataset.FileDataset]]:
            idx, f = args
            try:
                return (idx, pydicom.dcmread(f))
            except (InvalidDicomError, OSError) as e:
                print(f"Warning: Failed to read {f} - {e}")
                return (idx, None)

        total = len(files)
        results = [None] * total

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(read_single, (i, f)): i for i, f in enumerate(files)}
            completed = 0
            for future in concurrent.futures.as_completed(futures):
                idx, ds = future.result()
                results[idx] = ds
                completed += 1
                if callback and completed % 20 == 0:
                    callback(10 + int(40 * completed / total), f"Reading slice {completed}/{total}...")

        return [r for r in results if r is not None]

    @staticmethod
    def _stack_pixels(slices: List, callback: Optional[Callable] = None) -> np.ndarray:
        shape = slices[0].pixel_array.shape
        volume = np.empty((len(slices),) + tuple(shape), dtype=np.float32)
        total = len(slices)
        for i, s in enumerate(slices):
            if callback and i % 20 == 0:
                callback(50 + int(45 * i / total), f"Decoding slice {i + 1}/{total}...")
            pixels = s.pixel_array
            if pixels.shape != shape:
                raise ValueError(f"Slice {i} has shape {pixels.shape}, expected {shape}.")
            volume[i] = _apply_rescale(pixels.astype(np.float32), s)
        return volume
