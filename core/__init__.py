"""
Core module containing base classes and data structures.
"""

from core.base import (
    Volume,
    Texture,
    ColorTable,
    Plane,
    BoundingBox,
    Slice,
    ResliceResult,
    ObliqueSlice,
    BaseLoader,
    BaseResampler,
    array_min_max,
)
from core.dto import ResliceParamsDTO, ObliquePlaneDTO, ResliceJobDTO
from core.dag import DAGNode, SimpleDAGExecutor
from core.progress import (
    ProgressEvent,
    ProgressObserver,
    ProgressBus,
    LoggingProgressObserver,
    TerminalProgressObserver,
)
from core.pipeline import (
    PipelineStage,
    PIPELINE_STAGE_ORDER,
    build_reslice_pipeline,
    run_reslice_pipeline,
)
from core.coordinates import (
    TransformStack,
    ijk_to_ras_matrix,
    slice_to_ras_matrix,
    xy_to_slice_matrix,
    invert_rigid,
    invert_affine,
    world_to_voxel,
    voxel_to_world,
    world_to_index,
)
from core.orientation import (
    normalize_orientation,
    to_ras,
    point_to_ras,
    classify_acquisition,
)

__all__ = [
    'Volume', 'Texture', 'ColorTable', 'Plane', 'BoundingBox',
    'Slice', 'ResliceResult', 'ObliqueSlice',
    'BaseLoader', 'BaseResampler', 'array_min_max',
    'ResliceParamsDTO', 'ObliquePlaneDTO', 'ResliceJobDTO',
    'DAGNode', 'SimpleDAGExecutor',
    'ProgressEvent', 'ProgressObserver', 'ProgressBus',
    'LoggingProgressObserver', 'TerminalProgressObserver',
    'PipelineStage', 'PIPELINE_STAGE_ORDER', 'build_reslice_pipeline', 'run_reslice_pipeline',
    'TransformStack', 'ijk_to_ras_matrix', 'slice_to_ras_matrix', 'xy_to_slice_matrix',
    'invert_rigid', 'invert_affine', 'world_to_voxel', 'voxel_to_world', 'world_to_index',
    'normalize_orientation', 'to_ras', 'point_to_ras', 'classify_acquisition',
]
