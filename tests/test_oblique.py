import unittest
import numpy as np
import pytest

from core import BoundingBox, Plane
from core.coordinates import normalize, transform_vector
from loaders.dummy import linear_ramp_volume
from processors import ObliquePlaneResampler, intersect_plane_box, order_polygon, rotation_to_z


class TestObliquePlaneResampler(unittest.TestCase):
    def setUp(self):
        # Voxel centers span [0.5, 3.5] on x and y, [0, 3] on z.
        self.volume = linear_ramp_volume((4, 4, 4), origin=(0.5, 0.5, 0.0))

    def test_axial_plane_grid(self):
        out = ObliquePlaneResampler().process(self.volume, normal=(0, 0, 1))
        self.assertEqual(len(out.polygon), 4)
        np.testing.assert_allclose(out.polygon[:, 2], 1.5)
        self.assertEqual((out.texture.width, out.texture.height), (4, 4))
        self.assertEqual(out.origin_xy, (0.0, 0.0))
        np.testing.assert_allclose(out.center, [2.0, 2.0, 1.5])
        self.assertEqual((out.width, out.height), (4.0, 4.0))

    def test_inside_pixels_sample_floor_voxel(self):
        out = ObliquePlaneResampler().process(self.volume, normal=(0, 0, 1))
        # Grid point (1, 1, 1.5) -> continuous index (0.5, 0.5, 1.5) -> voxel (0, 0, 1)
        gray = int(np.uint8(16.0 * 255.0 / 63.0))
        self.assertEqual(out.texture.pixel(1, 1), (gray, gray, gray, 255))
        gray = int(np.uint8(26.0 * 255.0 / 63.0))
        self.assertEqual(out.texture.pixel(3, 3), (gray, gray, gray, 255))

    def test_outside_pixels_are_transparent_gradient(self):
        out = ObliquePlaneResampler().process(self.volume, normal=(0, 0, 1))
        count = 16
        self.assertEqual(out.texture.pixel(0, 0), (0, 255, 0, 0))
        self.assertEqual(out.texture.pixel(1, 0), (int(np.uint8(255.0 * 1 / count)), 255, 0, 0))
        self.assertEqual(out.texture.pixel(0, 2), (int(np.uint8(255.0 * 8 / count)), 255, 0, 0))

    def test_pixel_size_scales_grid(self):
        out = ObliquePlaneResampler(pixel_size=0.5).process(self.volume, normal=(0, 0, 1))
        self.assertEqual((out.texture.width, out.texture.height), (8, 8))
        self.assertEqual(out.width, 4.0)

    def test_plane_outside_volume_is_empty(self):
        out = ObliquePlaneResampler().process(self.volume, origin=(0, 0, 10), normal=(0, 0, 1))
        self.assertTrue(out.is_empty)
        self.assertEqual(len(out.polygon), 0)
        self.assertEqual(out.texture.data.size, 0)

    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            ObliquePlaneResampler().process(self.volume, normal=(0, 0, 0))
        with self.assertRaises(ValueError):
            ObliquePlaneResampler(pixel_size=0).process(self.volume)
        with self.assertRaises(ValueError):
            ObliquePlaneResampler().process(None)


def test_tilted_plane_polygon_and_alpha():
    volume = linear_ramp_volume((4, 4, 4))
    out = ObliquePlaneResampler().process(volume, normal=(1, 0, 1))
    box = volume.bounding_box

    assert len(out.polygon) >= 3
    for p in out.polygon:
        assert box.contains(p, tolerance=1e-6)
        assert abs(out.plane.signed_distance(p)) < 1e-6

    image = out.texture.as_image()
    alpha = image[..., 3]
    assert set(np.unique(alpha).tolist()) <= {0, 255}
    assert np.any(alpha == 255)
    outside = image[alpha == 0]
    assert np.all(outside[:, 1] == 255)
    assert np.all(outside[:, 2] == 0)


@pytest.mark.parametrize("normal", [(0, 0, 1), (1, 2, 3), (0, 1, 0), (-1, 0, 0), (0.3, -0.2, -0.9), (0, 0, -1)])
def test_rotation_to_z_maps_normal_onto_z(normal):
    r = rotation_to_z(normal)
    np.testing.assert_allclose(transform_vector(r, normalize(normal)), [0, 0, 1], atol=1e-9)
    np.testing.assert_allclose(r[:3, :3].T @ r[:3, :3], np.eye(3), atol=1e-9)
    assert np.linalg.det(r[:3, :3]) == pytest.approx(1.0)


def test_intersect_box_counterclockwise():
    box = BoundingBox((0, 2, 0, 2, 0, 2))
    polygon = intersect_plane_box(Plane(origin=(1, 1, 1), normal=(0, 0, 1)), box)
    assert len(polygon) == 4
    for a, b, c in zip(polygon, np.roll(polygon, -1, axis=0), np.roll(polygon, -2, axis=0)):
        assert np.cross(b - a, c - b)[2] > 0


def test_intersect_box_hexagon():
    box = BoundingBox((0, 2, 0, 2, 0, 2))
    polygon = intersect_plane_box(Plane(origin=(1, 1, 1), normal=(1, 1, 1)), box)
    assert len(polygon) == 6


def test_order_polygon_passes_short_input_through():
    pts = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    np.testing.assert_array_equal(order_polygon(pts, (0, 0, 1)), pts)
