"""
Headless CLI entry point for the Volume Reslicing Engine.

Runs the full pipeline (load -> reslice label map -> reslice -> oblique -> export)
and writes slice textures to disk.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time


def _configure_headless_vtk() -> None:
    """Force VTK / PyVista into offscreen mode when no display is available."""
    display = os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")
    if not display:
        os.environ.setdefault("PYVISTA_OFF_SCREEN", "true")
        os.environ.setdefault("VTK_DEFAULT_RENDER_WINDOW_OFFSCREEN", "1")


_configure_headless_vtk()


from core import ObliquePlaneDTO, ResliceJobDTO, ResliceParamsDTO, run_reslice_pipeline
from core.progress import LoggingProgressObserver, ProgressBus, TerminalProgressObserver


def run_batch(dto: ResliceJobDTO) -> dict:
    """
    Execute the full pipeline using the shared DAG engine.

    Returns:
        Dict keyed by stage name containing each stage output.
    """
    progress_bus = (
        ProgressBus()
        .subscribe(TerminalProgressObserver())
        .subscribe(LoggingProgressObserver())
    )

    t_start = time.perf_counter()
    results = run_reslice_pipeline(
        dto=dto,
        include_export=True,
        progress_bus=progress_bus,
        dag_progress=progress_bus.dag_callback(),
    )
    elapsed = time.perf_counter() - t_start

    print(f"\nPipeline complete in {elapsed:.2f}s")
    result = results.get("reslice")
    if result is not None:
        for axis in result.resliced_axes:
            print(f"  axis {axis}: {len(result.slices[axis])} slices")
    exported = results.get("export", [])
    if exported:
        print("Exported files:")
        for path in exported:
            print(f"  {path}")

    return results


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python cli.py",
        description="Headless volume reslicer (axis-aligned stacks and oblique planes)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Path to YAML or JSON config file. Overrides other flags.",
    )
    parser.add_argument("--input", metavar="PATH", default="", help="Input path (raw file, DICOM dir, or phantom size).")
    parser.add_argument("--loader", metavar="TYPE", default="dummy", help="Loader type: dummy | raw | dicom.")
    parser.add_argument("--dims", metavar="N", type=int, nargs=3, default=None, help="Raw volume dimensions (nx ny nz).")
    parser.add_argument("--dtype", metavar="TYPE", default="ushort", help="Raw scalar type: uchar schar ushort sshort uint sint float double.")
    parser.add_argument("--big-endian", action="store_true", help="Raw buffer is big-endian.")
    parser.add_argument("--offset", metavar="BYTES", type=int, default=0, help="Raw header bytes to skip.")
    parser.add_argument("--spacing", metavar="S", type=float, nargs=3, default=[1.0, 1.0, 1.0], help="Raw voxel spacing (x y z).")
    parser.add_argument("--labelmap", metavar="PATH", default=None, help="Label map path (same loader and geometry as --input).")
    parser.add_argument("--colortable", metavar="FILE", default=None, help="Colour lookup table for the label map.")
    parser.add_argument("--oblique-normal", metavar="N", type=float, nargs=3, default=None, help="Resample an oblique plane with this normal.")
    parser.add_argument("--oblique-origin", metavar="P", type=float, nargs=3, default=None, help="Oblique plane origin (default: volume center).")
    parser.add_argument("--pixel-size", metavar="S", type=float, default=1.0, help="Oblique output pixel size.")
    parser.add_argument("--single-slice", action="store_true", help="Reslice axis 0 only.")
    parser.add_argument("--workers", metavar="N", type=int, default=1, help="Threads used to reslice the three axes.")
    parser.add_argument("--output", metavar="DIR", default=None, help="Output directory.")
    parser.add_argument(
        "--formats",
        metavar="FMT",
        nargs="+",
        default=["npy"],
        help="Export formats: npy tiff vtk (space-separated).",
    )
    parser.add_argument("--log-level", metavar="LEVEL", default="WARNING", help="Logging level.")
    parser.add_argument("--dry-run", action="store_true", help="Print resolved DTO without running.")
    return parser


def _resolve_dto(args: argparse.Namespace, parser: argparse.ArgumentParser) -> ResliceJobDTO:
    """Resolve DTO from config file or inline CLI flags."""
    if args.config:
        cfg_path = args.config
        if cfg_path.endswith((".yaml", ".yml")):
            return ResliceJobDTO.from_yaml(cfg_path)
        if cfg_path.endswith(".json"):
            return ResliceJobDTO.from_json(cfg_path)
        try:
            return ResliceJobDTO.from_yaml(cfg_path)
        except Exception:
            return ResliceJobDTO.from_json(cfg_path)

    if args.loader != "dummy" and not args.input:
        parser.error("Provide --config FILE or --input PATH")
    if args.loader == "raw" and not args.dims:
        parser.error("--dims is required with --loader raw")

    oblique = None
    if args.oblique_normal is not None:
        oblique = ObliquePlaneDTO(
            normal=tuple(args.oblique_normal),
            origin=tuple(args.oblique_origin) if args.oblique_origin is not None else None,
            pixel_size=args.pixel_size,
        )

    return ResliceJobDTO(
        input_path=args.input,
        loader_type=args.loader,
        dimensions=tuple(args.dims) if args.dims else None,
        dtype=args.dtype,
        little_endian=not args.big_endian,
        header_offset=args.offset,
        spacing=tuple(args.spacing),
        labelmap_path=args.labelmap,
        colortable_path=args.colortable,
        reslice=ResliceParamsDTO(full_reslice=not args.single_slice, max_workers=args.workers),
        oblique=oblique,
        output_dir=args.output,
        export_formats=tuple(args.formats),
    )


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    dto = _resolve_dto(args, parser)

    if args.dry_run:
        import json

        print("Resolved ResliceJobDTO:")
        print(json.dumps(dto.to_dict(), indent=2))
        return 0

    print("=" * 60)
    print("Volume Reslicing Engine - Headless Batch Processor")
    print("=" * 60)

    try:
        run_batch(dto)
    except KeyboardInterrupt:
        print("\nAborted by user.")
        return 1
    except Exception as exc:
        import traceback

        print(f"\nPipeline failed: {type(exc).__name__}: {exc}")
        traceback.print_exc()
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
