"""
Masked template matching for rarity icons
Compares luma patterns over the opaque pixels of each icon only, so tinted
icons and whatever is behind their transparent corners do not matter.
"""
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from .color import luma_array
from .image import Mask, PixelBuffer, View, load_icon


class Rarity(Enum):
    """Reward rarity tiers"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"


@dataclass(frozen=True)
class RarityIcon:
    """Reference icon for one rarity tier, at 1920x1080 reference size"""
    rarity: Rarity
    image: PixelBuffer
    mask: Mask

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def scaled(self, scale: float) -> 'RarityIcon':
        """The icon as it appears on a capture with the given scale"""
        width = max(1, int(round(self.width * scale)))
        height = max(1, int(round(self.height * scale)))
        if (width, height) == (self.width, self.height):
            return self
        return RarityIcon(
            self.rarity,
            self.image.resized(width, height),
            self.mask.resized(width, height),
        )


@dataclass
class MatchResult:
    """Result of a template match"""
    rarity: Optional[Rarity]
    score: float  # RMS luma distance, 0 = identical, inf = not attempted
    location: Tuple[int, int]  # Top-left corner in capture pixels
    size: Tuple[int, int]  # width, height

    @property
    def center(self) -> Tuple[int, int]:
        return (self.location[0] + self.size[0] // 2, self.location[1] + self.size[1] // 2)

    def is_hit(self, threshold: float) -> bool:
        return self.score < threshold


def _distance_map(region: np.ndarray, icon: np.ndarray, mask: np.ndarray) -> Optional[np.ndarray]:
    """
    RMS luma distance (0-1) for every placement of `icon` inside `region`

    Returns None when the region cannot hold the icon.
    """
    h, w = icon.shape
    if region.shape[0] < h or region.shape[1] < w:
        return None
    count = float(mask.sum())
    if count == 0:
        return np.zeros((region.shape[0] - h + 1, region.shape[1] - w + 1), dtype=np.float32)
    result = cv2.matchTemplate(
        np.ascontiguousarray(region, dtype=np.float32),
        np.ascontiguousarray(icon, dtype=np.float32),
        cv2.TM_SQDIFF,
        mask=np.ascontiguousarray(mask, dtype=np.float32),
    )
    np.maximum(result, 0, out=result)
    return np.sqrt(result / count) / 255.0


def masked_luma_distance(region: View, icon: RarityIcon) -> float:
    """Distance between a region exactly the icon's size and the icon"""
    if (region.width, region.height) != (icon.width, icon.height):
        return math.inf
    scores = _distance_map(region.luma(), luma_array(icon.image.data), icon.mask.to_bool())
    if scores is None:
        return math.inf
    return float(scores[0, 0])


class TemplateMatcher:
    """
    Rarity icon matcher

    Holds the three rarity icons (loaded once, never mutated) and scores
    capture regions against them. All methods are pure, so one matcher can be
    shared by any number of threads.
    """

    # Default icon directory
    TEMPLATES_DIR = Path(__file__).parent.parent / "assets" / "icons"

    TEMPLATE_NAMES = {
        Rarity.COMMON: "common.png",
        Rarity.UNCOMMON: "uncommon.png",
        Rarity.RARE: "rare.png",
    }

    # Offsets tried around every expected position to absorb scaling rounding
    JITTER = 1

    def __init__(self, icons: Iterable[RarityIcon]):
        self.icons: List[RarityIcon] = list(icons)
        if not self.icons:
            raise ValueError("TemplateMatcher needs at least one rarity icon")

    @classmethod
    def from_directory(
        cls,
        templates_dir: Optional[str] = None,
        alpha_threshold: int = 128
    ) -> 'TemplateMatcher':
        """
        Load every rarity icon from a directory

        Raises FileNotFoundError if any icon is missing; a matcher without
        its icons is a setup error, not something to degrade from.
        """
        directory = Path(templates_dir) if templates_dir else cls.TEMPLATES_DIR
        icons = []
        for rarity, filename in cls.TEMPLATE_NAMES.items():
            path = directory / filename
            if not path.exists():
                raise FileNotFoundError(f"missing rarity icon: {path}")
            image, mask = load_icon(path, alpha_threshold)
            icons.append(RarityIcon(rarity, image, mask))
        return cls(icons)

    def scaled_icons(self, scale: float) -> List[RarityIcon]:
        return [icon.scaled(scale) for icon in self.icons]

    def match_at(self, capture: View, icon: RarityIcon, x: int, y: int) -> float:
        """
        Best score of `icon` with its top-left near (x, y), within +-JITTER px

        Returns infinity when the capture cannot hold the icon there.
        """
        j = self.JITTER
        region = capture.sub_image(x - j, y - j, icon.width + 2 * j, icon.height + 2 * j)
        scores = _distance_map(region.luma(), luma_array(icon.image.data), icon.mask.to_bool())
        if scores is None:
            return math.inf
        return float(scores.min())

    def best_match(
        self,
        capture: View,
        icons: List[RarityIcon],
        center_x: int,
        top: int
    ) -> MatchResult:
        """Best rarity for an icon centred on `center_x` with its top at `top`"""
        best = MatchResult(None, math.inf, (center_x, top), (0, 0))
        for icon in icons:
            x = center_x - icon.width // 2
            score = self.match_at(capture, icon, x, top)
            if score < best.score:
                best = MatchResult(icon.rarity, score, (x, top), (icon.width, icon.height))
        return best

    def scan(
        self,
        capture: View,
        icons: List[RarityIcon],
        x_range: Tuple[int, int],
        top: int,
        threshold: float
    ) -> List[MatchResult]:
        """
        Slide every icon along a horizontal strip

        Returns one MatchResult per x position whose best icon scores below
        `threshold`, ordered left to right.
        """
        if not icons:
            return []
        j = self.JITTER
        height = max(icon.height for icon in icons)
        x1, x2 = x_range
        strip = capture.sub_image(x1, top - j, x2 - x1, height + 2 * j)
        if strip.empty:
            return []
        luma = strip.luma()

        columns = strip.width
        best_score = np.full(columns, np.inf, dtype=np.float32)
        best_icon = np.full(columns, -1, dtype=np.int32)
        for index, icon in enumerate(icons):
            scores = _distance_map(luma, luma_array(icon.image.data), icon.mask.to_bool())
            if scores is None:
                continue
            # Best vertical jitter per column, keyed by icon centre
            per_column = scores.min(axis=0)
            centers = np.arange(len(per_column)) + icon.width // 2
            better = per_column < best_score[centers]
            best_score[centers[better]] = per_column[better]
            best_icon[centers[better]] = index

        matches = []
        for column in np.nonzero(best_score < threshold)[0]:
            icon = icons[int(best_icon[column])]
            cx = strip.x1 - capture.x1 + int(column)
            matches.append(MatchResult(
                icon.rarity,
                float(best_score[column]),
                (cx - icon.width // 2, top),
                (icon.width, icon.height),
            ))
        return matches
