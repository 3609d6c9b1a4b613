"""
Data Transfer Objects (DTOs) for reslicing runs.

Design rules
------------
* All DTOs are immutable (frozen=True).  The resamplers never read config
  files themselves; callers build a DTO and pass its values in.
* ``from_dict`` / ``from_yaml`` / ``from_json`` factory methods keep
  deserialisation in one place; ``to_dict`` is the inverse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from config import (
    DEFAULT_OUTPUT_DIR,
    EXPORT_FORMATS,
    OBLIQUE_DEFAULT_NORMAL,
    OBLIQUE_PIXEL_SIZE,
    RESLICE_FULL,
    RESLICE_MAX_WORKERS,
)


def _vec3(raw: Any, name: str) -> Tuple[float, float, float]:
    values = tuple(float(v) for v in raw)
    if len(values) != 3:
        raise ValueError(f"{name} needs 3 values, got {list(raw)}")
    return values  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Axis-aligned reslice DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResliceParamsDTO:
    """Parameters of the tri-planar reslice pass."""

    full_reslice: bool = RESLICE_FULL
    max_workers:  int  = RESLICE_MAX_WORKERS

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ResliceParamsDTO":
        return ResliceParamsDTO(
            full_reslice = bool(d.get("full_reslice", RESLICE_FULL)),
            max_workers  = int(d.get("max_workers",   RESLICE_MAX_WORKERS)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "full_reslice": self.full_reslice,
            "max_workers":  self.max_workers,
        }


# ---------------------------------------------------------------------------
# Oblique plane DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ObliquePlaneDTO:
    """
    Cutting plane for the oblique resampler.

    ``origin=None`` means the volume's RAS center.
    """

    normal:     Tuple[float, float, float]           = OBLIQUE_DEFAULT_NORMAL
    origin:     Optional[Tuple[float, float, float]] = None
    pixel_size: float                                = OBLIQUE_PIXEL_SIZE

    def __post_init__(self) -> None:
        if self.pixel_size <= 0:
            raise ValueError(f"pixel_size must be positive, got {self.pixel_size}")
        if all(abs(c) == 0.0 for c in self.normal):
            raise ValueError("Oblique plane normal must not be the zero vector.")

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ObliquePlaneDTO":
        origin_raw = d.get("origin")
        return ObliquePlaneDTO(
            normal     = _vec3(d.get("normal", OBLIQUE_DEFAULT_NORMAL), "normal"),
            origin     = _vec3(origin_raw, "origin") if origin_raw is not None else None,
            pixel_size = float(d.get("pixel_size", OBLIQUE_PIXEL_SIZE)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "normal":     list(self.normal),
            "origin":     list(self.origin) if self.origin is not None else None,
            "pixel_size": self.pixel_size,
        }


# ---------------------------------------------------------------------------
# Job DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResliceJobDTO:
    """
    Immutable configuration for a headless reslicing run.

    Used by the CLI and by unit tests that bypass any front-end.
    """

    # Input
    input_path:      str                               = ""
    loader_type:     str                               = "dummy"   # "dummy" | "raw" | "dicom"

    # Raw loader
    dimensions:      Optional[Tuple[int, int, int]]    = None
    dtype:           str                               = "ushort"
    little_endian:   bool                              = True
    header_offset:   int                               = 0
    spacing:         Tuple[float, float, float]        = (1.0, 1.0, 1.0)
    space:           Tuple[str, str, str]              = ("right", "anterior", "superior")

    # Label map / colours
    labelmap_path:   Optional[str]                     = None
    colortable_path: Optional[str]                     = None

    # Resampling
    reslice:         ResliceParamsDTO                  = ResliceParamsDTO()
    oblique:         Optional[ObliquePlaneDTO]         = None

    # Output
    output_dir:      Optional[str]                     = None
    export_formats:  Tuple[str, ...]                   = EXPORT_FORMATS

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ResliceJobDTO":
        dims_raw = d.get("dimensions")
        oblique_raw = d.get("oblique")
        return ResliceJobDTO(
            input_path      = str(d.get("input_path",     "")),
            loader_type     = str(d.get("loader_type",    "dummy")),
            dimensions      = tuple(int(x) for x in dims_raw) if dims_raw else None,
            dtype           = str(d.get("dtype",          "ushort")),
            little_endian   = bool(d.get("little_endian", True)),
            header_offset   = int(d.get("header_offset",  0)),
            spacing         = _vec3(d.get("spacing", (1.0, 1.0, 1.0)), "spacing"),
            space           = tuple(str(s) for s in d.get("space", ("right", "anterior", "superior"))),
            labelmap_path   = d.get("labelmap_path"),
            colortable_path = d.get("colortable_path"),
            reslice         = ResliceParamsDTO.from_dict(d.get("reslice") or {}),
            oblique         = ObliquePlaneDTO.from_dict(oblique_raw) if oblique_raw else None,
            output_dir      = d.get("output_dir"),
            export_formats  = tuple(d.get("export_formats", EXPORT_FORMATS)),
        )

    @staticmethod
    def from_yaml(path: str) -> "ResliceJobDTO":
        """Load config from a YAML file."""
        import yaml  # only needed for CLI config files
        with open(path, encoding="utf-8") as fh:
            d = yaml.safe_load(fh)
        return ResliceJobDTO.from_dict(d or {})

    @staticmethod
    def from_json(path: str) -> "ResliceJobDTO":
        """Load config from a JSON file."""
        import json
        with open(path, encoding="utf-8") as fh:
            d = json.load(fh)
        return ResliceJobDTO.from_dict(d)

    @property
    def resolved_output_dir(self) -> str:
        return self.output_dir or DEFAULT_OUTPUT_DIR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_path":      self.input_path,
            "loader_type":     self.loader_type,
            "dimensions":      list(self.dimensions) if self.dimensions else None,
            "dtype":           self.dtype,
            "little_endian":   self.little_endian,
            "header_offset":   self.header_offset,
            "spacing":         list(self.spacing),
            "space":           list(self.space),
            "labelmap_path":   self.labelmap_path,
            "colortable_path": self.colortable_path,
            "reslice":         self.reslice.to_dict(),
            "oblique":         self.oblique.to_dict() if self.oblique else None,
            "output_dir":      self.output_dir,
            "export_formats":  list(self.export_formats),
        }
