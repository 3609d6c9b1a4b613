import unittest
import numpy as np
import pytest

from core import BoundingBox, ColorTable, Plane, Texture, Volume
from core.coordinates import ijk_to_ras_matrix


class TestVolume(unittest.TestCase):
    def test_from_buffer_layout(self):
        vol = Volume.from_buffer(np.arange(24), (2, 3, 4))
        self.assertEqual(vol.dimensions, (2, 3, 4))
        self.assertEqual(vol.data.shape, (4, 3, 2))
        # Buffer index = i + nx * (j + ny * k)
        self.assertEqual(vol.data[3, 2, 1], 1 + 2 * (2 + 3 * 3))

    def test_from_buffer_rejects_size_mismatch(self):
        with self.assertRaises(ValueError):
            Volume.from_buffer(np.arange(10), (2, 3, 4))

    def test_rejects_empty_dimensions(self):
        with self.assertRaises(ValueError):
            Volume(data=np.zeros((0, 4, 4)))

    def test_scalar_range_and_spacing(self):
        vol = Volume(data=np.arange(8, dtype=np.float32).reshape(2, 2, 2), spacing=(0.5, 1.0, 2.0))
        self.assertEqual(vol.scalar_range, (0.0, 7.0))
        self.assertEqual(vol.max, 7.0)
        self.assertEqual(vol.spacing, (0.5, 1.0, 2.0))
        np.testing.assert_allclose(vol.ijk_to_ras[:3, :3], np.diag([0.5, 1.0, 2.0]))

    def test_spacing_derived_from_affine(self):
        vol = Volume(data=np.zeros((2, 2, 2)), ijk_to_ras=ijk_to_ras_matrix((2.0, 3.0, 4.0)))
        self.assertEqual(vol.spacing, (2.0, 3.0, 4.0))

    def test_singular_affine_rejected(self):
        m = np.eye(4)
        m[2, 2] = 0.0
        with self.assertRaises(ValueError):
            Volume(data=np.zeros((2, 2, 2)), ijk_to_ras=m)

    def test_ras_geometry_uses_voxel_centers(self):
        vol = Volume(
            data=np.zeros((4, 4, 4)),
            ijk_to_ras=ijk_to_ras_matrix((2.0, 2.0, 2.0), origin=(10.0, 0.0, -5.0)),
        )
        np.testing.assert_allclose(vol.ras_origin, [10.0, 0.0, -5.0])
        np.testing.assert_allclose(vol.ras_extent, [6.0, 6.0, 6.0])
        np.testing.assert_allclose(vol.ras_center, [13.0, 3.0, -2.0])
        np.testing.assert_allclose(vol.ras_spacing, [2.0, 2.0, 2.0])
        self.assertEqual(vol.bounding_box.bounds, (10.0, 16.0, 0.0, 6.0, -5.0, 1.0))

    def test_flipped_axis_geometry(self):
        cosines = np.diag([-1.0, 1.0, 1.0])
        vol = Volume(data=np.zeros((2, 2, 3)), ijk_to_ras=ijk_to_ras_matrix((1.0, 1.0, 1.0), (0, 0, 0), cosines))
        np.testing.assert_allclose(vol.ras_origin, [-2.0, 0.0, 0.0])
        np.testing.assert_array_equal(vol.orientation, [-1, 1, 1])

    def test_labelmap_dimensions_must_match(self):
        vol = Volume(data=np.zeros((2, 2, 2)))
        with self.assertRaises(ValueError):
            vol.with_labelmap(Volume(data=np.zeros((3, 2, 2))))

    def test_with_labelmap_marks_label_layer(self):
        table = ColorTable({1: (1.0, 0.0, 0.0, 1.0)})
        vol = Volume(data=np.zeros((2, 2, 2))).with_labelmap(Volume(data=np.ones((2, 2, 2))), table)
        self.assertTrue(vol.has_labelmap)
        self.assertTrue(vol.labelmap.is_labelmap)
        self.assertIs(vol.labelmap.colortable, table)
        self.assertIsNone(vol.colortable)
        self.assertFalse(vol.is_labelmap)

    def test_cosines_alone_build_the_affine(self):
        vol = Volume(data=np.arange(27).reshape(3, 3, 3), direction_cosines=np.diag([1.0, 1.0, -1.0]))
        np.testing.assert_allclose(vol.ijk_to_ras[:3, :3] @ [0.0, 0.0, 1.0], [0.0, 0.0, -1.0])
        np.testing.assert_array_equal(vol.orientation, [1, 1, -1])
        np.testing.assert_allclose(vol.ras_origin, [0.0, 0.0, -2.0])

    def test_cosine_rows_are_normalized(self):
        vol = Volume(data=np.zeros((2, 2, 2)), spacing=(2.0, 2.0, 2.0), direction_cosines=3.0 * np.eye(3))
        np.testing.assert_allclose(vol.direction_cosines, np.eye(3))
        self.assertEqual(vol.spacing, (2.0, 2.0, 2.0))

    def test_cosines_must_match_affine(self):
        with self.assertRaises(ValueError):
            Volume(data=np.zeros((2, 2, 2)), ijk_to_ras=np.eye(4), direction_cosines=np.diag([1.0, 1.0, -1.0]))

    def test_spacing_must_match_affine(self):
        with self.assertRaises(ValueError):
            Volume(data=np.zeros((2, 2, 2)), spacing=(2.0, 1.0, 1.0), ijk_to_ras=np.eye(4))

    def test_with_labelmap_copies_metadata(self):
        vol = Volume(data=np.zeros((2, 2, 2)), metadata={"Type": "Synthetic"})
        labels = Volume(data=np.ones((2, 2, 2)), metadata={"Type": "Labels"})
        attached = vol.with_labelmap(labels)
        attached.metadata["LabelCount"] = 1
        attached.labelmap.metadata["LabelCount"] = 1
        self.assertNotIn("LabelCount", vol.metadata)
        self.assertNotIn("LabelCount", labels.metadata)


class TestTexture(unittest.TestCase):
    def test_pixel_addressing(self):
        image = np.zeros((2, 3, 4), dtype=np.uint8)
        image[1, 2] = (1, 2, 3, 4)
        tex = Texture.from_image(image)
        self.assertEqual((tex.width, tex.height), (3, 2))
        self.assertEqual(tex.pixel(2, 1), (1, 2, 3, 4))
        # pixel (i, j) starts at byte 4 * (j * width + i)
        self.assertEqual(int(tex.data[4 * (1 * 3 + 2)]), 1)

    def test_buffer_length_validated(self):
        with self.assertRaises(ValueError):
            Texture(width=2, height=2, data=np.zeros(15, dtype=np.uint8))

    def test_empty(self):
        self.assertTrue(Texture(0, 0, np.zeros(0, dtype=np.uint8)).is_empty)


def test_colortable_fallback_entry():
    table = ColorTable()
    table.add(3, 0.0, 0.5, 1.0, 1.0)
    assert table.get(7) is None
    assert table.lookup(7) == (0, 1.0, 0.1, 0.2, 1.0)
    assert table.lookup(3.9) == (3, 0.0, 0.5, 1.0, 1.0)
    assert 3 in table and 4 not in table
    assert table.labels() == [3]


def test_colortable_rejects_out_of_range_channel():
    with pytest.raises(ValueError):
        ColorTable().add(1, 0.0, 2.0, 0.0, 1.0)
    with pytest.raises(ValueError):
        ColorTable().add(1, 0.0, 1.0)


def test_plane_normalizes_and_rejects_zero_normal():
    plane = Plane(origin=(0, 0, 2), normal=(0, 0, 5))
    np.testing.assert_allclose(plane.normal, [0, 0, 1])
    assert plane.offset == pytest.approx(2.0)
    assert plane.signed_distance((1, 1, 3)) == pytest.approx(1.0)
    with pytest.raises(ValueError):
        Plane(origin=(0, 0, 0), normal=(0, 0, 0))


def test_bounding_box_orders_bounds():
    box = BoundingBox((3, 0, 0, 1, 0, 1))
    assert box.axis_range(0) == (0.0, 3.0)
    assert box.contains((1.5, 0.5, 0.5))
    assert not box.contains((4.0, 0.5, 0.5))
