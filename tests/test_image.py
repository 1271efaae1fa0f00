import io
import math
import os
import sys
import unittest

import numpy as np
from PIL import Image

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from relicscan.color import Color
from relicscan.geometry import Rect
from relicscan.image import Mask, PixelBuffer, View, as_view


def gradient(width, height):
    xs = np.linspace(0, 200, width, dtype=np.float32)[None, :]
    ys = np.linspace(0, 50, height, dtype=np.float32)[:, None]
    gray = (xs + ys).astype(np.uint8)
    return np.stack([gray, gray // 2, 255 - gray], axis=2)


class TestView(unittest.TestCase):
    def setUp(self):
        self.buffer = PixelBuffer(np.zeros((50, 100, 3), dtype=np.uint8))
        self.view = self.buffer.as_view()

    def test_sub_image_is_clamped(self):
        sub = self.view.sub_image(90, 40, 50, 50)
        self.assertEqual((sub.width, sub.height), (10, 10))

        sub = self.view.sub_image(-5, -5, 10, 10)
        self.assertEqual((sub.x1, sub.y1, sub.width, sub.height), (0, 0, 10, 10))

        sub = self.view.sub_image(200, 10, 10, 10)
        self.assertTrue(sub.empty)

    def test_sub_rect_clips_negative_origin(self):
        sub = self.view.sub_rect(Rect(-5, -5, 10, 10))
        self.assertEqual((sub.x1, sub.y1, sub.width, sub.height), (0, 0, 5, 5))

    def test_nested_views_use_absolute_coordinates(self):
        inner = self.view.sub_image(10, 10, 40, 20).sub_image(5, 5, 10, 10)
        self.assertEqual((inner.x1, inner.y1, inner.x2, inner.y2), (15, 15, 25, 25))
        self.assertEqual(inner.true_width, 100)

    def test_centered_trims_keep_even_size(self):
        sub = self.view.sub_image(0, 0, 10, 10)
        trimmed = sub.trimmed_centerh(5)
        self.assertEqual((trimmed.x1, trimmed.width), (3, 4))
        self.assertEqual(sub.trimmed_centerh(11).width, 10)

        trimmed = sub.trimmed_centerv(7)
        self.assertEqual((trimmed.y1, trimmed.height), (2, 6))

    def test_edge_trims(self):
        self.assertEqual(self.view.trimmed_left(30).rect, Rect(0, 0, 30, 50))
        self.assertEqual(self.view.trimmed_right(30).rect, Rect(70, 0, 30, 50))
        self.assertEqual(self.view.trimmed_top(20).rect, Rect(0, 0, 100, 20))
        self.assertEqual(self.view.trimmed_bottom(20).rect, Rect(0, 30, 100, 20))
        self.assertEqual(self.view.trimmed_left(500).width, 100)

    def test_crops_never_exceed_the_view(self):
        view = self.view.sub_image(10, 5, 60, 30)
        for size in (0, 1, 5, 29, 30, 60, 61, 1000):
            for sub in (
                view.trimmed_left(size), view.trimmed_right(size), view.trimmed_centerh(size),
                view.trimmed_top(size), view.trimmed_bottom(size), view.trimmed_centerv(size),
                view.sub_image(size, size, size, size), view.sub_image(0, 0, size, size),
            ):
                self.assertGreaterEqual(sub.x1, view.x1)
                self.assertGreaterEqual(sub.y1, view.y1)
                self.assertLessEqual(sub.x2, view.x2)
                self.assertLessEqual(sub.y2, view.y2)
                self.assertGreaterEqual(sub.width, 0)
                self.assertGreaterEqual(sub.height, 0)

    def test_array_is_zero_copy(self):
        sub = self.view.sub_image(10, 10, 5, 5)
        self.buffer.data[12, 12] = (9, 8, 7)
        self.assertEqual(tuple(sub.array[2, 2]), (9, 8, 7))

    def test_average_color_floors(self):
        data = np.zeros((1, 2, 3), dtype=np.uint8)
        data[0, 1] = (1, 3, 255)
        color = PixelBuffer(data).as_view().average_color()
        self.assertEqual(color, Color(0, 1, 127))

    def test_average_color_of_empty_view(self):
        self.assertEqual(self.view.sub_image(0, 0, 0, 0).average_color(), Color.BLACK)

    def test_average_color_masked(self):
        data = np.zeros((2, 2, 3), dtype=np.uint8)
        data[0, 0] = (100, 100, 100)
        mask = Mask.from_bool(np.array([[True, False], [False, False]]))
        view = PixelBuffer(data).as_view()
        self.assertEqual(view.average_color_masked(mask), Color(100, 100, 100))
        self.assertEqual(view.average_color_masked(Mask.full(3, 3)), Color.BLACK)

    def test_average_deviation_masked(self):
        a = PixelBuffer(np.full((4, 4, 3), 10, dtype=np.uint8)).as_view()
        b = PixelBuffer(np.full((4, 4, 3), 10, dtype=np.uint8)).as_view()
        c = PixelBuffer(np.full((3, 4, 3), 10, dtype=np.uint8)).as_view()

        self.assertEqual(a.average_deviation_masked(b, Mask.full(4, 4)), 0.0)
        self.assertTrue(math.isinf(a.average_deviation_masked(c, Mask.full(4, 4))))
        empty = Mask.from_bool(np.zeros((4, 4), dtype=bool))
        self.assertEqual(a.average_deviation_masked(b, empty), 0.0)

        rng = np.random.default_rng(7)
        noisy = PixelBuffer(rng.integers(0, 256, (16, 16, 3), dtype=np.uint8)).as_view()
        mask = Mask.from_bool(rng.random((16, 16)) > 0.5)
        self.assertEqual(noisy.average_deviation_masked(noisy, mask), 0.0)

    def test_as_view_accepts_arrays(self):
        view = as_view(np.zeros((3, 4, 3), dtype=np.uint8))
        self.assertIsInstance(view, View)
        self.assertEqual((view.width, view.height), (4, 3))
        self.assertIsNone(as_view(None))


class TestPixelBuffer(unittest.TestCase):
    def test_from_raw_discards_alpha(self):
        raw = bytes([1, 2, 3, 255] * 4)
        buffer = PixelBuffer.from_raw(2, raw)
        self.assertEqual((buffer.width, buffer.height), (2, 2))
        self.assertEqual(tuple(buffer.data[1, 1]), (1, 2, 3))

    def test_from_raw_ignores_partial_rows(self):
        raw = bytes(4 * 2 * 3 + 5)
        self.assertEqual(PixelBuffer.from_raw(2, raw).height, 3)
        self.assertEqual(len(PixelBuffer.from_raw(0, raw)), 0)

    def test_rejects_bad_shape(self):
        with self.assertRaises(ValueError):
            PixelBuffer(np.zeros((4, 4, 2), dtype=np.uint8))

    def test_from_png_mask(self):
        rgba = np.zeros((3, 3, 4), dtype=np.uint8)
        rgba[:, :, :3] = 200
        rgba[1, :, 3] = 255
        rgba[2, 0, 3] = 127
        out = io.BytesIO()
        Image.fromarray(rgba, 'RGBA').save(out, format='PNG')

        buffer, mask = PixelBuffer.from_png_mask(out.getvalue())
        self.assertEqual((buffer.width, buffer.height), (3, 3))
        self.assertEqual(mask.count, 3)
        self.assertTrue(mask.to_bool()[1].all())

    def test_resize_round_trip(self):
        original = PixelBuffer(gradient(1366, 768))
        up = original.resized(1920, 1080)
        self.assertEqual((up.width, up.height), (1920, 1080))

        back = up.resized(1366, 768)
        diff = np.abs(back.data.astype(np.int16) - original.data.astype(np.int16))
        self.assertLess(diff.mean(), 1.5)

    def test_height_round_trip_keeps_width(self):
        original = PixelBuffer(gradient(137, 77))
        for height in (48, 100, 333, 1080):
            back = original.resize_to_height(height).resize_to_height(77)
            self.assertLessEqual(abs(back.width - original.width), 1, height)

    def test_resize_to_height_keeps_aspect(self):
        buffer = PixelBuffer(gradient(1920, 1080)).resize_to_height(720)
        self.assertEqual((buffer.width, buffer.height), (1280, 720))

    def test_map_pixels(self):
        buffer = PixelBuffer(np.full((2, 2, 3), 10, dtype=np.uint8))
        buffer.map_pixels(lambda pixels: 255 - pixels)
        self.assertTrue((buffer.data == 245).all())


class TestMask(unittest.TestCase):
    def test_round_trip_and_count(self):
        bits = np.array([[True, False, True], [False, False, True]])
        mask = Mask.from_bool(bits)
        self.assertTrue((mask.to_bool() == bits).all())
        self.assertEqual(mask.count, 3)

    def test_resized_stays_binary(self):
        mask = Mask.full(10, 10).resized(5, 4)
        self.assertEqual((mask.width, mask.height), (5, 4))
        self.assertEqual(mask.count, 20)


class TestColor(unittest.TestCase):
    def test_deviation_is_reflexive_and_symmetric(self):
        a = Color(10, 200, 30)
        b = Color(40, 180, 90)
        self.assertEqual(a.deviation(a), 0.0)
        self.assertAlmostEqual(a.deviation(b), b.deviation(a))

    def test_deviation_grows_fast(self):
        base = Color(100, 100, 100)
        near = base.deviation(Color(103, 103, 103))
        far = base.deviation(Color(180, 180, 180))
        self.assertLess(near, 0.1)
        self.assertGreater(far, 100)

    def test_luma(self):
        self.assertEqual(Color.BLACK.luma(), 0)
        self.assertGreater(Color(0, 255, 0).luma(), Color(255, 0, 0).luma())
        self.assertGreater(Color(255, 0, 0).luma(), Color(0, 0, 255).luma())


if __name__ == '__main__':
    unittest.main()
