import unittest
import numpy as np
import pytest

from core import Volume
from core.coordinates import (
    TransformStack,
    ijk_to_ras_matrix,
    invert_affine,
    invert_rigid,
    mat_mul,
    normalize,
    slice_to_ras_matrix,
    transform_point,
    world_to_index,
    world_to_voxel,
    voxel_to_world,
    xy_to_slice_matrix,
)
from loaders.dummy import linear_ramp_volume
from processors import AxisAlignedReslicer


def _rotation_z(deg: float, translation=(0.0, 0.0, 0.0)) -> np.ndarray:
    t = np.radians(deg)
    m = np.eye(4)
    m[:2, :2] = [[np.cos(t), -np.sin(t)], [np.sin(t), np.cos(t)]]
    m[:3, 3] = translation
    return m


class TestCoordinateConversions(unittest.TestCase):
    def test_ijk_ras_round_trip(self):
        cosines = np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        ijk_to_ras = ijk_to_ras_matrix((0.5, 2.0, 3.0), (10.0, -4.0, 7.0), cosines)
        ras_to_ijk = invert_affine(ijk_to_ras)

        ijk = np.array([[0, 0, 0], [3, 1, 2], [1.5, 2.25, 0.5]])
        world = voxel_to_world(ijk, ijk_to_ras)
        np.testing.assert_allclose(world_to_voxel(world, ras_to_ijk), ijk, atol=1e-9)

    def test_ijk_to_ras_columns(self):
        m = ijk_to_ras_matrix((2.0, 3.0, 4.0), (1.0, 2.0, 3.0))
        np.testing.assert_allclose(transform_point(m, (1, 1, 1)), [3.0, 5.0, 7.0])

    def test_world_to_index_rounding(self):
        ras_to_ijk = invert_affine(ijk_to_ras_matrix((2.0, 2.0, 2.0)))
        self.assertEqual(world_to_index((2.9, 3.1, 1.0), ras_to_ijk), (1, 2, 0))
        self.assertEqual(world_to_index((2.9, 3.1, 1.0), ras_to_ijk, rounding="floor"), (1, 1, 0))
        self.assertEqual(world_to_index((2.9, 3.1, 1.0), ras_to_ijk, rounding="ceil"), (2, 2, 1))
        with self.assertRaises(ValueError):
            world_to_index((0, 0, 0), ras_to_ijk, rounding="nearest-ish")


class TestMatrixInversion(unittest.TestCase):
    def test_invert_rigid(self):
        m = _rotation_z(30.0, (1.0, 2.0, 3.0))
        np.testing.assert_allclose(mat_mul(invert_rigid(m), m), np.eye(4), atol=1e-12)

    def test_invert_rigid_rejects_scaling(self):
        m = np.diag([2.0, 1.0, 1.0, 1.0])
        with self.assertRaises(ValueError):
            invert_rigid(m)

    def test_invert_affine_rejects_singular(self):
        with self.assertRaises(ValueError):
            invert_affine(np.diag([1.0, 0.0, 1.0, 1.0]))

    def test_mat_mul_applies_right_to_left(self):
        translate = np.eye(4)
        translate[:3, 3] = (1.0, 0.0, 0.0)
        rotate = _rotation_z(90.0)
        p = transform_point(mat_mul(rotate, translate), (0.0, 0.0, 0.0))
        np.testing.assert_allclose(p, [0.0, 1.0, 0.0], atol=1e-12)


def test_normalize_rejects_zero_vector():
    with pytest.raises(ValueError):
        normalize((0.0, 0.0, 0.0))


def test_xy_to_slice_centers_viewport():
    m = xy_to_slice_matrix(fov=(250.0, 250.0, 1.0), dimensions=(256, 256, 1))
    np.testing.assert_allclose(np.diag(m)[:3], [250.0 / 256, 250.0 / 256, 1.0])
    np.testing.assert_allclose(m[:3, 3], [-125.0, -125.0, 0.0])
    np.testing.assert_allclose(transform_point(m, (128, 128, 0)), [0.0, 0.0, 0.0])


def test_xy_to_slice_origin_shift_keeps_zero_depth():
    m = xy_to_slice_matrix(fov=(10.0, 20.0, 4.0), dimensions=(10, 10, 1), xyz_origin=(1.0, 2.0, 3.0))
    np.testing.assert_allclose(m[:3, 3], [-4.0, -8.0, 0.0])


def test_slice_to_ras_columns():
    m = slice_to_ras_matrix((0, 1, 0), (0, 0, 1), (1, 0, 0))
    np.testing.assert_allclose(m[:3, 3], [0.0, 0.0, 0.0])
    np.testing.assert_allclose(transform_point(m, (1, 0, 0)), [0, 1, 0])
    np.testing.assert_allclose(transform_point(m, (0, 0, 1)), [1, 0, 0])

    placed = slice_to_ras_matrix((0, 1, 0), (0, 0, 1), (1, 0, 0), center=(5, 6, 7))
    np.testing.assert_allclose(transform_point(placed, (1, 0, 0)), [5, 7, 7])


def test_transform_stack_slice_frame_has_identity_translation():
    vol = linear_ramp_volume((4, 4, 4), origin=(10.0, 10.0, 10.0))
    s = AxisAlignedReslicer().process(vol).slice_at(0, 0)

    stack = TransformStack.from_volume(vol, s)
    np.testing.assert_allclose(stack.slice_to_ras[:3, 3], [0.0, 0.0, 0.0])
    np.testing.assert_allclose(stack.slice_to_ras[:3, :3], np.eye(3))

    placed = TransformStack.from_volume(vol, s, place_at_center=True)
    np.testing.assert_allclose(placed.slice_to_ras[:3, 3], [11.5, 11.5, 10.0])


def test_transform_stack_recomposes_on_change():
    vol = Volume(data=np.zeros((4, 4, 4)), spacing=(2.0, 2.0, 2.0))
    stack = TransformStack.from_volume(vol, fov=(8.0, 8.0, 1.0), dimensions=(8, 8, 1))

    np.testing.assert_allclose(stack.xy_to_ijk_point(4, 4), [0.0, 0.0, 0.0])
    np.testing.assert_allclose(stack.xy_to_ijk_point(6, 4), [1.0, 0.0, 0.0])

    stack.slice_to_ras = slice_to_ras_matrix((1, 0, 0), (0, 1, 0), (0, 0, 1), center=(0, 0, 4))
    np.testing.assert_allclose(stack.xy_to_ijk_point(4, 4), [0.0, 0.0, 2.0])
    np.testing.assert_allclose(mat_mul(stack.ras_to_slice, stack.slice_to_ras), np.eye(4), atol=1e-12)
