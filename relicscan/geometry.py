"""
Reference-frame geometry for the relic reward screen

Every constant below is measured in pixels of a 1920x1080 capture at 100%
UI scale. At runtime they are multiplied by ``height / 1080 * ui_scale``.
Horizontal positions are offsets from the capture's horizontal centre and
vertical positions are offsets from its vertical centre, which is the same
as plain ``y * height / 1080`` at 100% UI scale. Calibration presets depend
on these numbers, so treat them as a wire format.
"""
from dataclasses import dataclass
from typing import List, Optional


REFERENCE_WIDTH = 1920
REFERENCE_HEIGHT = 1080

# Reward cards
CARD_WIDTH = 235
CARD_HEIGHT = 235
CARD_PITCH = 243  # left edge to left edge
CARD_TOP = 316
MAX_CARDS = 4

# Rarity icon strip, directly below the card row
ICON_SIZE = 28
ICON_GAP = 6

# Text strips inside a card (fractions of the card size)
OWNED_STRIP = 0.14
NAME_STRIP = 0.30
STRIP_MARGIN = 0.05

# Countdown timer, centred over the row
TIMER_SIZE = 64
TIMER_OFFSET = 90  # timer top sits this far above CARD_TOP

# Selected-card highlight in the top right corner of a card
SELECT_PATCH = 12
SELECT_PAD_RIGHT = 5
SELECT_PAD_TOP = 4

# Icon matches further apart than this start a new card during the strip scan
CLUSTER_GAP = 14

# Theme sampling on the options screen: (x, y, w, h)
THEME_PRIMARY_REGION = (110, 87, 20, 1)
THEME_SECONDARY_REGION = (146, 181, 14, 8)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in capture pixels"""
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    @property
    def center_x(self) -> int:
        return self.x + self.w // 2

    @property
    def center_y(self) -> int:
        return self.y + self.h // 2

    @property
    def empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    def union(self, other: 'Rect') -> 'Rect':
        """Smallest rectangle containing both (empty rectangles are ignored)"""
        if self.empty:
            return other
        if other.empty:
            return self
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return Rect(x, y, max(self.right, other.right) - x, max(self.bottom, other.bottom) - y)

    def to_tuple(self) -> tuple:
        return (self.x, self.y, self.w, self.h)


@dataclass(frozen=True)
class ReferenceFrame:
    """
    Maps reference-frame constants onto one capture

    Args:
        width: Capture width in pixels
        height: Capture height in pixels
        ui_scale: In-game UI scale hint (1.0 = 100%)
    """
    width: int
    height: int
    ui_scale: float = 1.0

    @property
    def scale(self) -> float:
        return self.height / REFERENCE_HEIGHT * self.ui_scale

    def length(self, value: float) -> int:
        """Scale a reference length, never below one pixel"""
        return max(1, int(round(value * self.scale)))

    def x(self, offset: float) -> int:
        """Capture x for a reference offset from the horizontal centre"""
        return int(round(self.width / 2 + offset * self.scale))

    def y(self, ref_y: float) -> int:
        """Capture y for a reference y coordinate"""
        return int(round(self.height / 2 + (ref_y - REFERENCE_HEIGHT / 2) * self.scale))

    def slot_centers(self, count: int) -> List[int]:
        """Centre x of every card when `count` cards are shown"""
        return [
            self.x((i - (count - 1) / 2.0) * CARD_PITCH)
            for i in range(count)
        ]

    def card_rect(self, center_x: int) -> Rect:
        w = self.length(CARD_WIDTH)
        return Rect(center_x - w // 2, self.y(CARD_TOP), w, self.length(CARD_HEIGHT))

    def icon_top(self) -> int:
        return self.y(CARD_TOP + CARD_HEIGHT + ICON_GAP)

    def icon_origin(self, center_x: int, icon_width: int) -> tuple:
        """Top-left corner of an icon of the given (scaled) width"""
        return (center_x - icon_width // 2, self.icon_top())

    def scan_span(self, icon_width: int) -> tuple:
        """Horizontal range (x1, x2) that holds every possible rarity icon"""
        half = (MAX_CARDS / 2.0) * CARD_PITCH
        x1 = self.x(-half) - icon_width
        x2 = self.x(half) + icon_width
        return (max(0, x1), min(self.width, x2))

    def owned_rect(self, card: Rect) -> Rect:
        margin = max(1, int(round(card.w * STRIP_MARGIN)))
        return Rect(
            card.x + margin,
            card.y,
            max(1, card.w - margin * 2),
            max(1, int(round(card.h * OWNED_STRIP))),
        )

    def name_rect(self, card: Rect) -> Rect:
        margin = max(1, int(round(card.w * STRIP_MARGIN)))
        h = max(1, int(round(card.h * NAME_STRIP)))
        return Rect(card.x + margin, card.bottom - h, max(1, card.w - margin * 2), h)

    def timer_rect(self, center_x: Optional[int] = None) -> Rect:
        size = self.length(TIMER_SIZE)
        if center_x is None:
            center_x = self.x(0)
        return Rect(center_x - size // 2, self.y(CARD_TOP - TIMER_OFFSET), size, size)

    def selection_rect(self, card: Rect) -> Rect:
        size = max(1, int(round(card.w * SELECT_PATCH / CARD_WIDTH)))
        pad_r = max(1, int(round(card.w * SELECT_PAD_RIGHT / CARD_WIDTH)))
        pad_t = max(1, int(round(card.h * SELECT_PAD_TOP / CARD_HEIGHT)))
        return Rect(card.right - size - pad_r, card.y + pad_t, size, size)

    def cluster_gap(self) -> int:
        return self.length(CLUSTER_GAP)


def scale_region(region: tuple, width: int, height: int) -> tuple:
    """Scale an (x, y, w, h) region of the 1920x1080 reference to a capture"""
    sx = width / REFERENCE_WIDTH
    sy = height / REFERENCE_HEIGHT
    x, y, w, h = region
    return (
        int(round(x * sx)),
        int(round(y * sy)),
        max(1, int(round(w * sx))),
        max(1, int(round(h * sy))),
    )
