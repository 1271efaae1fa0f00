import itertools
import os
import sys
import unittest

import numpy as np

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from synthetic import BACKGROUND, dimmed, ink_masked_icons, make_icons, reward_frame

from relicscan.image import PixelBuffer
from relicscan.layout import CardLayout, LayoutDetector, cluster_matches
from relicscan.settings import DetectionSettings
from relicscan.template_matcher import MatchResult, Rarity, TemplateMatcher, masked_luma_distance

RARITIES = [Rarity.COMMON, Rarity.UNCOMMON, Rarity.RARE]


def rarity_combos(count):
    """A handful of rarity assignments per card count, always including mixed ones"""
    combos = list(itertools.product(RARITIES, repeat=count))
    step = max(1, len(combos) // 4)
    return combos[::step]


class TestTemplateMatcher(unittest.TestCase):
    def setUp(self):
        self.icons = make_icons()
        self.matcher = TemplateMatcher(self.icons)

    def test_icon_matches_itself(self):
        for icon in self.icons:
            self.assertLess(masked_luma_distance(icon.image.as_view(), icon), 0.01)

    def test_icons_are_told_apart(self):
        for a, b in itertools.permutations(self.icons, 2):
            self.assertGreater(masked_luma_distance(a.image.as_view(), b), 0.16)

    def test_shape_mismatch_is_infinite(self):
        icon = self.icons[0]
        region = PixelBuffer(np.zeros((10, 10, 3), dtype=np.uint8)).as_view()
        self.assertEqual(masked_luma_distance(region, icon), float('inf'))

    def test_best_match_with_jitter(self):
        capture, frame = reward_frame(1080, [Rarity.RARE])
        center_x = frame.slot_centers(1)[0]
        icons = self.matcher.scaled_icons(frame.scale)

        # One pixel off is still found
        result = self.matcher.best_match(capture.as_view(), icons, center_x + 1, frame.icon_top())
        self.assertEqual(result.rarity, Rarity.RARE)
        self.assertLess(result.score, 0.01)

    def test_match_outside_capture(self):
        view = PixelBuffer(np.zeros((20, 20, 3), dtype=np.uint8)).as_view()
        self.assertEqual(self.matcher.match_at(view, self.icons[0], 15, 15), float('inf'))

    def test_missing_icon_directory_raises(self):
        with self.assertRaises(FileNotFoundError):
            TemplateMatcher.from_directory('/nonexistent/icons')

    def test_scan_reports_view_relative_positions(self):
        capture, frame = reward_frame(1080, [Rarity.COMMON, Rarity.UNCOMMON])
        view = capture.as_view()
        icons = self.matcher.scaled_icons(frame.scale)
        span = frame.scan_span(icons[0].width)
        matches = self.matcher.scan(view, icons, span, frame.icon_top(), 0.16)

        clusters = cluster_matches(matches, frame.cluster_gap())
        self.assertEqual(len(clusters), 2)
        best = [min(cluster, key=lambda m: m.score) for cluster in clusters]
        self.assertEqual([m.center[0] for m in best], frame.slot_centers(2))
        self.assertEqual([m.rarity for m in best], [Rarity.COMMON, Rarity.UNCOMMON])


class TestClusterMatches(unittest.TestCase):
    def match(self, x):
        return MatchResult(Rarity.COMMON, 0.0, (x - 5, 0), (10, 10))

    def test_gap_splits_clusters(self):
        matches = [self.match(x) for x in (100, 104, 110, 200, 205, 400)]
        clusters = cluster_matches(matches, 14)
        self.assertEqual([len(c) for c in clusters], [3, 2, 1])

    def test_unsorted_input(self):
        clusters = cluster_matches([self.match(300), self.match(100)], 14)
        self.assertEqual([c[0].center[0] for c in clusters], [100, 300])


class TestLayoutDetector(unittest.TestCase):
    def setUp(self):
        self.icons = make_icons()
        self.matcher = TemplateMatcher(self.icons)

    def assertLayout(self, layout, frame, rarities):
        count = len(rarities)
        self.assertEqual(layout.count, count)
        self.assertEqual(layout.rarity_per_slot, tuple(rarities))
        self.assertEqual(layout.slot_centers, tuple(frame.slot_centers(count)))
        self.assertEqual(len(layout.match_confidence), count)
        self.assertEqual(layout.hits, count)

    def test_every_count_and_resolution(self):
        detector = LayoutDetector(self.matcher)
        for height in (480, 720, 1080, 1440, 2160):
            for count in range(1, 5):
                for rarities in rarity_combos(count):
                    with self.subTest(height=height, rarities=rarities):
                        capture, frame = reward_frame(height, list(rarities), icons=self.icons)
                        self.assertLayout(detector.infer(capture.as_view()), frame, rarities)

    def test_8k_capture(self):
        detector = LayoutDetector(self.matcher)
        rarities = [Rarity.RARE, Rarity.COMMON, Rarity.UNCOMMON, Rarity.COMMON]
        capture, frame = reward_frame(4320, rarities, icons=self.icons)
        self.assertLayout(detector.infer(capture.as_view()), frame, rarities)

    def test_ui_scale(self):
        settings = DetectionSettings(ui_scale=0.8)
        detector = LayoutDetector(self.matcher, settings)
        rarities = [Rarity.UNCOMMON, Rarity.RARE, Rarity.COMMON]
        capture, frame = reward_frame(1080, rarities, ui_scale=0.8, icons=self.icons)
        self.assertLayout(detector.infer(capture.as_view()), frame, rarities)

    def test_blank_capture_has_no_layout(self):
        detector = LayoutDetector(self.matcher)
        blank = PixelBuffer(np.full((1080, 1920, 3), BACKGROUND, dtype=np.uint8))
        layout = detector.infer(blank.as_view())
        self.assertEqual(layout, CardLayout())
        self.assertTrue(layout.empty)

    def test_empty_capture(self):
        detector = LayoutDetector(self.matcher)
        self.assertTrue(detector.infer(PixelBuffer.empty().as_view()).empty)

    def test_full_row_wins_without_scan(self):
        detector = LayoutDetector(self.matcher)
        rarities = [Rarity.COMMON, Rarity.RARE, Rarity.RARE]
        capture, frame = reward_frame(1080, rarities, icons=self.icons)
        view = capture.as_view()
        icons = self.matcher.scaled_icons(frame.scale)

        hypothesis = detector.evaluate(view, frame, icons, 3)
        self.assertEqual(hypothesis.hits, 3)
        self.assertLess(hypothesis.mean_deviation, 0.01)
        self.assertEqual(detector.evaluate(view, frame, icons, 1).hits, 1)
        self.assertEqual(detector.evaluate(view, frame, icons, 2).hits, 0)

    def test_strip_scan_recovers_a_tinted_icon(self):
        detector = LayoutDetector(self.matcher)
        rarities = [Rarity.COMMON, Rarity.RARE, Rarity.UNCOMMON]
        # Faded enough to miss icon_accept, still under scan_accept
        drawn = [dimmed(icon, 0.72) if icon.rarity == Rarity.RARE else icon for icon in self.icons]
        capture, frame = reward_frame(1080, rarities, icons=drawn)
        view = capture.as_view()

        hypothesis = detector.evaluate(view, frame, self.matcher.scaled_icons(frame.scale), 3)
        self.assertEqual(hypothesis.hits, 2)

        layout = detector.infer(view)
        self.assertEqual(layout.count, 3)
        self.assertEqual(layout.rarity_per_slot, tuple(rarities))
        self.assertEqual(layout.slot_centers, tuple(frame.slot_centers(3)))
        self.assertEqual(layout.hits, 2)
        self.assertGreater(layout.match_confidence[1], detector.settings.icon_accept)
        self.assertLess(layout.match_confidence[1], detector.settings.scan_accept)

    def test_transparent_icon_pixels_are_ignored(self):
        icons = ink_masked_icons()
        detector = LayoutDetector(TemplateMatcher(icons))
        rarities = [Rarity.UNCOMMON, Rarity.RARE, Rarity.COMMON, Rarity.RARE]
        for height in (1080, 1440):
            with self.subTest(height=height):
                capture, frame = reward_frame(height, rarities, icons=icons, background=(200, 90, 140))
                self.assertLayout(detector.infer(capture.as_view()), frame, rarities)

    def test_opaque_icons_miss_on_a_different_background(self):
        capture, frame = reward_frame(
            1080, [Rarity.COMMON], icons=ink_masked_icons(), background=(200, 90, 140)
        )
        icon = self.icons[0]
        x, y = frame.icon_origin(frame.slot_centers(1)[0], icon.width)
        region = capture.as_view().sub_image(x, y, icon.width, icon.height)
        self.assertGreater(masked_luma_distance(region, icon), 0.12)
        self.assertLess(masked_luma_distance(region, ink_masked_icons()[0]), 0.01)


if __name__ == '__main__':
    unittest.main()
