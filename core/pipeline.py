"""
Shared DAG pipeline used by the CLI and tests.

This module centralizes the reslicing stages:
load -> reslice_labelmap -> reslice -> oblique -> export

The label map is always resliced before the volume that composites it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Literal, Optional
import logging

from config import DUMMY_VOLUME_SIZE
from core.base import ResliceResult, Volume
from core.dag import DAGNode, SimpleDAGExecutor
from core.dto import ResliceJobDTO
from core.progress import ProgressBus

logger = logging.getLogger(__name__)

PipelineStage = Literal["load", "reslice_labelmap", "reslice", "oblique", "export"]
PIPELINE_STAGE_ORDER: tuple[PipelineStage, ...] = ("load", "reslice_labelmap", "reslice", "oblique", "export")


def _noop_progress(_percent: int, _message: str) -> None:
    """Default no-op progress callback."""
    return


def _resolve_dummy_size(input_path: str) -> int:
    """
    Resolve DummyLoader size from input_path.

    Accepts an integer string (e.g. "96"), otherwise uses the configured default.
    """
    if not input_path:
        return DUMMY_VOLUME_SIZE
    try:
        size = int(input_path)
        if size > 0:
            return size
    except (TypeError, ValueError):
        pass
    return DUMMY_VOLUME_SIZE


def _raw_loader(dto: ResliceJobDTO):
    from loaders import RawVolumeLoader

    if not dto.dimensions:
        raise ValueError("dimensions are required when loader_type='raw'.")
    return RawVolumeLoader(
        dimensions=dto.dimensions,
        dtype=dto.dtype,
        spacing=dto.spacing,
        little_endian=dto.little_endian,
        header_offset=dto.header_offset,
        space=dto.space,
    )


def _stage_load(dto: ResliceJobDTO, progress: Callable[[int, str], None]) -> Volume:
    """Load the volume and attach the optional label map and colour table."""
    progress(0, f"Loading input via {dto.loader_type}...")

    loader_type = (dto.loader_type or "dummy").lower()
    if loader_type == "dummy":
        from loaders import DummyLoader

        volume = DummyLoader().load(size=_resolve_dummy_size(dto.input_path), callback=progress)
    elif loader_type == "raw":
        if not dto.input_path:
            raise ValueError("input_path is required when loader_type='raw'.")
        volume = _raw_loader(dto).load(dto.input_path, callback=progress)
    elif loader_type == "dicom":
        from loaders import DicomSeriesLoader

        if not dto.input_path:
            raise ValueError("input_path is required when loader_type='dicom'.")
        volume = DicomSeriesLoader().load(dto.input_path, callback=progress)
    else:
        raise ValueError(f"Unknown loader_type: {dto.loader_type!r}. Supported: 'dummy', 'raw', 'dicom'.")

    colortable = None
    if dto.colortable_path:
        from loaders import ColorTableLoader

        colortable = ColorTableLoader().load(dto.colortable_path)

    if dto.labelmap_path:
        if loader_type == "dicom":
            from loaders import DicomSeriesLoader

            labelmap = DicomSeriesLoader().load(dto.labelmap_path)
        else:
            if loader_type == "dummy":
                raise ValueError("labelmap_path requires loader_type 'raw' or 'dicom'.")
            labelmap = _raw_loader(dto).load(dto.labelmap_path)
        volume = volume.with_labelmap(labelmap, colortable)
    elif colortable is not None and volume.labelmap is not None:
        volume = volume.with_labelmap(volume.labelmap, colortable)

    return volume


def _stage_reslice_labelmap(
    volume: Volume,
    dto: ResliceJobDTO,
    progress: Callable[[int, str], None],
) -> Optional[ResliceResult]:
    """Reslice the attached label map, if any."""
    if volume.labelmap is None:
        progress(100, "No label map attached.")
        return None
    from processors import AxisAlignedReslicer

    reslicer = AxisAlignedReslicer(dto.reslice.full_reslice, dto.reslice.max_workers)
    return reslicer.process(volume.labelmap, callback=progress)


def _stage_reslice(
    volume: Volume,
    labelmap_result: Optional[ResliceResult],
    dto: ResliceJobDTO,
    progress: Callable[[int, str], None],
) -> ResliceResult:
    """Reslice the volume, compositing the label map slices."""
    from processors import AxisAlignedReslicer

    reslicer = AxisAlignedReslicer(dto.reslice.full_reslice, dto.reslice.max_workers)
    return reslicer.process(volume, callback=progress, labelmap_result=labelmap_result)


def _stage_oblique(volume: Volume, dto: ResliceJobDTO, progress: Callable[[int, str], None]):
    """Resample the configured oblique plane, or skip when none is set."""
    if dto.oblique is None:
        progress(100, "No oblique plane requested.")
        return None
    from processors import ObliquePlaneResampler

    return ObliquePlaneResampler(dto.oblique.pixel_size).process(
        volume,
        callback=progress,
        origin=dto.oblique.origin,
        normal=dto.oblique.normal,
    )


def _stage_export(
    data_dict: dict[str, Any],
    dto: ResliceJobDTO,
    progress: Callable[[int, str], None],
) -> list[str]:
    """Export requested outputs and return exported file paths."""
    out_dir = Path(dto.resolved_output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    result = data_dict.get("reslice")
    oblique = data_dict.get("oblique")
    formats = tuple(fmt.lower() for fmt in dto.export_formats)

    from exporters import EXPORTERS

    unknown = [fmt for fmt in formats if fmt not in EXPORTERS]
    if unknown:
        raise ValueError(f"Unknown export format(s): {unknown}. Supported: {sorted(EXPORTERS)}.")
    if not formats:
        progress(100, "No export tasks requested.")
        return []

    exported: list[str] = []
    total = len(formats)
    for idx, fmt in enumerate(formats, start=1):
        progress(int(100 * (idx - 1) / total), f"Exporting {fmt.upper()} -> {out_dir}")
        exporter = EXPORTERS[fmt]
        if result is not None:
            exported.extend(exporter.export_reslice(result, str(out_dir)))
        if oblique is not None and not oblique.is_empty:
            exported.append(exporter.export_oblique(oblique, str(out_dir)))

    logger.info("Exported %d file(s) to %s", len(exported), out_dir)
    progress(100, "Export complete.")
    return exported


def build_reslice_pipeline(
    dto: ResliceJobDTO,
    *,
    input_volume: Optional[Volume] = None,
    include_export: bool = True,
    progress_bus: Optional[ProgressBus] = None,
) -> SimpleDAGExecutor:
    """
    Build a DAG executor for the reslicing pipeline.

    Args:
        dto: Pipeline configuration.
        input_volume: Optional preloaded volume. If provided, the load stage returns it.
        include_export: Whether to write outputs to ``dto.resolved_output_dir``.
        progress_bus: Optional progress event bus.
    """
    dag = SimpleDAGExecutor()

    def stage_progress(stage: PipelineStage) -> Callable[[int, str], None]:
        if progress_bus is None:
            return _noop_progress
        return progress_bus.stage_callback(stage)

    dag.add(DAGNode(
        name="load",
        fn=lambda _deps: input_volume if input_volume is not None else _stage_load(dto, stage_progress("load")),
        depends_on=(),
    ))
    dag.add(DAGNode(
        name="reslice_labelmap",
        fn=lambda deps: _stage_reslice_labelmap(deps["load"], dto, stage_progress("reslice_labelmap")),
        depends_on=("load",),
    ))
    dag.add(DAGNode(
        name="reslice",
        fn=lambda deps: _stage_reslice(
            deps["load"], deps["reslice_labelmap"], dto, stage_progress("reslice")
        ),
        depends_on=("load", "reslice_labelmap"),
    ))
    dag.add(DAGNode(
        name="oblique",
        fn=lambda deps: _stage_oblique(deps["load"], dto, stage_progress("oblique")),
        depends_on=("load",),
    ))
    if include_export:
        dag.add(DAGNode(
            name="export",
            fn=lambda deps: _stage_export(deps, dto, stage_progress("export")),
            depends_on=("reslice", "oblique"),
        ))

    return dag


def run_reslice_pipeline(
    dto: ResliceJobDTO,
    *,
    input_volume: Optional[Volume] = None,
    include_export: bool = True,
    progress_bus: Optional[ProgressBus] = None,
    dag_progress: Optional[Callable[[int, str], None]] = None,
) -> dict[str, Any]:
    """
    Execute the reslicing pipeline and return stage outputs keyed by stage name.
    """
    dag = build_reslice_pipeline(
        dto=dto,
        input_volume=input_volume,
        include_export=include_export,
        progress_bus=progress_bus,
    )
    return dag.run(progress=dag_progress)


__all__ = [
    "PipelineStage",
    "PIPELINE_STAGE_ORDER",
    "build_reslice_pipeline",
    "run_reslice_pipeline",
]
