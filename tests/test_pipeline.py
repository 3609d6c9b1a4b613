import os

import numpy as np
import pytest

from core import (
    ColorTable,
    ObliquePlaneDTO,
    PIPELINE_STAGE_ORDER,
    ProgressBus,
    ResliceJobDTO,
    ResliceParamsDTO,
    Volume,
    build_reslice_pipeline,
    run_reslice_pipeline,
)
from loaders.dummy import linear_ramp_volume


def test_build_reslice_pipeline_nodes():
    dag = build_reslice_pipeline(ResliceJobDTO(), input_volume=linear_ramp_volume(), include_export=False)
    assert set(dag.node_names) == {"load", "reslice_labelmap", "reslice", "oblique"}
    order = dag.order()
    assert order.index("reslice_labelmap") < order.index("reslice")

    dag = build_reslice_pipeline(ResliceJobDTO(), input_volume=linear_ramp_volume())
    assert dag.order() == [s for s in PIPELINE_STAGE_ORDER if s in dag.node_names]


def test_run_pipeline_uses_preloaded_volume():
    vol = linear_ramp_volume((3, 4, 5))
    results = run_reslice_pipeline(ResliceJobDTO(), input_volume=vol, include_export=False)
    assert results["load"] is vol
    assert results["reslice_labelmap"] is None
    assert results["oblique"] is None
    assert [len(s) for s in results["reslice"].slices] == [5, 3, 4]


def test_run_pipeline_single_axis_and_oblique():
    dto = ResliceJobDTO(
        reslice=ResliceParamsDTO(full_reslice=False),
        oblique=ObliquePlaneDTO(normal=(0.0, 0.0, 1.0)),
    )
    results = run_reslice_pipeline(dto, input_volume=linear_ramp_volume((4, 4, 4)), include_export=False)
    assert results["reslice"].resliced_axes == (0,)
    assert not results["oblique"].is_empty


def test_run_pipeline_reslices_labelmap_first():
    table = ColorTable({1: (0.0, 1.0, 0.0, 1.0)})
    labels = Volume(data=(np.arange(27).reshape(3, 3, 3) % 2).astype(np.int16))
    vol = linear_ramp_volume((3, 3, 3)).with_labelmap(labels, table)

    events = []
    bus = ProgressBus().subscribe(events.append)
    results = run_reslice_pipeline(ResliceJobDTO(), input_volume=vol, include_export=False, progress_bus=bus)

    label_result = results["reslice_labelmap"]
    assert label_result is not None
    for axis in range(3):
        for k in range(3):
            assert results["reslice"].slice_at(axis, k).labelmap is label_result.slice_at(axis, k).texture
    stages = [e.stage for e in events]
    assert stages.index("reslice_labelmap") < stages.index("reslice")


def test_run_pipeline_dummy_loader_exports_npy(tmp_path):
    dto = ResliceJobDTO(
        input_path="12",
        loader_type="dummy",
        oblique=ObliquePlaneDTO(normal=(1.0, 1.0, 0.0)),
        output_dir=str(tmp_path),
        export_formats=("npy",),
    )
    results = run_reslice_pipeline(dto)

    assert results["load"].dimensions == (12, 12, 12)
    assert results["reslice_labelmap"] is not None
    exported = results["export"]
    assert len(exported) == 4
    for path in exported:
        assert os.path.exists(path)
    stack = np.load(os.path.join(str(tmp_path), "slices_axis0.npy"))
    assert stack.shape == (12, 12, 12, 4)
    assert stack.dtype == np.uint8


def test_run_pipeline_raw_loader(tmp_path):
    path = tmp_path / "ramp.raw"
    np.arange(2 * 3 * 4, dtype="<u2").tofile(str(path))
    dto = ResliceJobDTO(input_path=str(path), loader_type="raw", dimensions=(2, 3, 4), dtype="ushort")
    results = run_reslice_pipeline(dto, include_export=False)
    assert results["load"].dimensions == (2, 3, 4)
    assert len(results["reslice"].slices[0]) == 4


def test_unknown_loader_and_format_rejected(tmp_path):
    with pytest.raises(ValueError):
        run_reslice_pipeline(ResliceJobDTO(loader_type="nifti"), include_export=False)
    with pytest.raises(ValueError):
        run_reslice_pipeline(
            ResliceJobDTO(output_dir=str(tmp_path), export_formats=("png",)),
            input_volume=linear_ramp_volume(),
        )
    with pytest.raises(ValueError):
        run_reslice_pipeline(ResliceJobDTO(loader_type="raw", input_path="x.raw"), include_export=False)
