import json

import pytest

from config import DEFAULT_OUTPUT_DIR, EXPORT_FORMATS, OBLIQUE_PIXEL_SIZE, RESLICE_FULL, RESLICE_MAX_WORKERS
from core.dto import ObliquePlaneDTO, ResliceJobDTO, ResliceParamsDTO


def test_reslice_job_dto_defaults():
    dto = ResliceJobDTO()
    assert dto.loader_type == "dummy"
    assert dto.reslice == ResliceParamsDTO(RESLICE_FULL, RESLICE_MAX_WORKERS)
    assert dto.oblique is None
    assert dto.export_formats == EXPORT_FORMATS
    assert dto.resolved_output_dir == DEFAULT_OUTPUT_DIR


def test_reslice_job_dto_from_dict_uses_defaults():
    assert ResliceJobDTO.from_dict({}) == ResliceJobDTO()


def test_reslice_job_dto_round_trips_through_dict():
    dto = ResliceJobDTO(
        input_path="scan.raw",
        loader_type="raw",
        dimensions=(4, 5, 6),
        dtype="float",
        little_endian=False,
        header_offset=12,
        spacing=(0.5, 0.5, 1.0),
        space=("left", "posterior", "superior"),
        reslice=ResliceParamsDTO(full_reslice=False, max_workers=3),
        oblique=ObliquePlaneDTO(normal=(1.0, 0.0, 1.0), origin=(1.0, 2.0, 3.0), pixel_size=0.5),
        output_dir="out",
        export_formats=("npy", "vtk"),
    )
    assert ResliceJobDTO.from_dict(dto.to_dict()) == dto


def test_reslice_job_dto_from_json(tmp_path):
    path = tmp_path / "job.json"
    path.write_text(json.dumps({"loader_type": "raw", "dimensions": [2, 2, 2], "oblique": {"normal": [0, 1, 0]}}))
    dto = ResliceJobDTO.from_json(str(path))
    assert dto.dimensions == (2, 2, 2)
    assert dto.oblique.normal == (0.0, 1.0, 0.0)
    assert dto.oblique.origin is None
    assert dto.oblique.pixel_size == OBLIQUE_PIXEL_SIZE


def test_reslice_job_dto_from_yaml(tmp_path):
    pytest.importorskip("yaml")
    path = tmp_path / "job.yaml"
    path.write_text(
        "loader_type: dummy\n"
        "input_path: '24'\n"
        "reslice:\n"
        "  full_reslice: false\n"
        "export_formats: [npy, tiff]\n",
        encoding="utf-8",
    )
    dto = ResliceJobDTO.from_yaml(str(path))
    assert dto.input_path == "24"
    assert dto.reslice.full_reslice is False
    assert dto.export_formats == ("npy", "tiff")


def test_oblique_dto_validation():
    with pytest.raises(ValueError):
        ObliquePlaneDTO(pixel_size=0.0)
    with pytest.raises(ValueError):
        ObliquePlaneDTO(normal=(0.0, 0.0, 0.0))
    with pytest.raises(ValueError):
        ObliquePlaneDTO.from_dict({"normal": [1, 0]})
