"""
Relic reward screen detector
Reads the reward cards, owned counts, countdown timer and current selection
from a capture of the reward screen, at any resolution and UI scale.
"""
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from .geometry import Rect, ReferenceFrame
from .image import PixelBuffer, View, as_view
from .items import ItemLookup, ItemValue
from .layout import CardLayout, LayoutDetector
from .ocr import Recognizer, TextExtractor, normalize_whitespace
from .settings import DetectionSettings
from .template_matcher import Rarity, TemplateMatcher
from .theme import Theme

logger = logging.getLogger(__name__)

OWNED_PATTERN = re.compile(r'(?i)(?:(\d+)\s*[x×]?\s*)?(?:OWNED|CRAFTED)(?:\s*[:x×]?\s*(\d+))?')
DIGITS_PATTERN = re.compile(r'\d+')

Capture = Union[View, PixelBuffer, np.ndarray]


@dataclass(frozen=True)
class Reward:
    """One parsed reward card"""
    name: str
    owned: int
    rarity: Optional[Rarity]
    value: Optional[ItemValue] = None
    slot: int = 0  # layout slot the card was read from


@dataclass(frozen=True)
class Rewards:
    """Snapshot of everything read from one frame of the reward screen"""
    timer: int = 0
    present: bool = False
    layout_count: int = 0
    reward_area: Rect = field(default_factory=Rect)
    rewards: Tuple[Reward, ...] = ()
    layout: CardLayout = field(default_factory=CardLayout)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timer": self.timer,
            "present": self.present,
            "layout_count": self.layout_count,
            "reward_area": list(self.reward_area.to_tuple()),
            "rewards": [
                {
                    "slot": r.slot,
                    "name": r.name,
                    "owned": r.owned,
                    "rarity": r.rarity.value if r.rarity else None,
                    "value": asdict(r.value) if r.value else None,
                }
                for r in self.rewards
            ],
        }


def parse_owned_count(text: str) -> int:
    """
    Owned/crafted count from the top strip of a card

    "3 OWNED", "Owned x3" and "CRAFTED: 2" all parse; the marker on its own
    means one, and no marker means zero.
    """
    match = OWNED_PATTERN.search(text)
    if match is None:
        return 0
    number = match.group(2) or match.group(1)
    return int(number) if number else 1


def parse_timer(text: str) -> int:
    """First run of digits, 0 when there is none"""
    match = DIGITS_PATTERN.search(text)
    return int(match.group(0)) if match else 0


def normalize_name(raw: str) -> str:
    return normalize_whitespace(raw.replace('\n', ' '))


def clamp_rect(rect: Rect, width: int, height: int) -> Rect:
    x1 = min(max(0, rect.x), width)
    y1 = min(max(0, rect.y), height)
    x2 = min(max(0, rect.right), width)
    y2 = min(max(0, rect.bottom), height)
    return Rect(x1, y1, x2 - x1, y2 - y1)


class RewardScreenDetector:
    """
    Reward-screen parser and selection detector

    Holds only read-only collaborators (icon matcher, text extractor,
    settings, item lookup); every call derives its state from the capture
    and theme it is given, so one detector can serve many threads.

    Args:
        matcher: Rarity icon matcher
        extractor: Multi-candidate text extractor
        settings: Detection thresholds
        lookup: Optional name -> (canonical name, ItemValue) capability
    """

    def __init__(
        self,
        matcher: TemplateMatcher,
        extractor: TextExtractor,
        settings: Optional[DetectionSettings] = None,
        lookup: Optional[ItemLookup] = None
    ):
        self.settings = settings or DetectionSettings()
        self.matcher = matcher
        self.extractor = extractor
        self.layouts = LayoutDetector(matcher, self.settings)
        self.lookup = lookup

    @classmethod
    def create(
        cls,
        recognizer: Recognizer,
        icons_dir: Optional[str] = None,
        settings: Optional[DetectionSettings] = None,
        lookup: Optional[ItemLookup] = None
    ) -> 'RewardScreenDetector':
        """Build a detector, loading the rarity icons from disk"""
        settings = settings or DetectionSettings()
        return cls(
            TemplateMatcher.from_directory(icons_dir),
            TextExtractor(recognizer, settings),
            settings,
            lookup,
        )

    def _view(self, capture: Optional[Capture]) -> Optional[View]:
        try:
            view = as_view(capture)
        except ValueError as e:
            logger.warning("Ignoring malformed capture: %s", e)
            return None
        if view is None or view.empty:
            return None
        return view

    def _frame(self, capture: View) -> ReferenceFrame:
        return ReferenceFrame(capture.width, capture.height, self.settings.ui_scale)

    def infer_layout(self, capture: Capture) -> CardLayout:
        view = self._view(capture)
        if view is None:
            return CardLayout()
        return self.layouts.infer(view)

    def detect_rewards(self, capture: Capture, theme: Theme) -> Rewards:
        """
        Read the reward screen

        Args:
            capture: Screen capture (View, PixelBuffer or RGB array)
            theme: Sampled UI theme

        Returns:
            Rewards; the neutral Rewards() when the capture is unusable
        """
        view = self._view(capture)
        if view is None:
            return Rewards()

        frame = self._frame(view)
        layout = self.layouts.infer(view)

        rewards = []
        area = Rect()
        for slot in range(layout.count):
            card = frame.card_rect(layout.slot_centers[slot])
            area = area.union(card)
            reward = self.parse_reward(view, frame, card, layout.rarity_per_slot[slot], theme, slot)
            if reward is not None:
                rewards.append(reward)

        timer = self.read_timer(view, frame, layout)
        # Any inferred card counts, whether it matched in place or in the strip scan
        present = layout.count > 0 or timer > 0 or bool(rewards)

        result = Rewards(
            timer=timer,
            present=present,
            layout_count=layout.count,
            reward_area=clamp_rect(area, view.width, view.height),
            rewards=tuple(rewards),
            layout=layout,
        )
        logger.debug(
            "Rewards: %d card(s), timer %d, present %s",
            result.layout_count, result.timer, result.present,
        )
        return result

    def parse_reward(
        self,
        capture: View,
        frame: ReferenceFrame,
        card: Rect,
        rarity: Optional[Rarity],
        theme: Theme,
        slot: int = 0
    ) -> Optional[Reward]:
        """Name and owned count of one card; None when no name could be read"""
        name = normalize_name(self.extractor.extract_text(capture.sub_rect(frame.name_rect(card)), theme))
        if not name:
            return None

        owned_text = self.extractor.extract_text(capture.sub_rect(frame.owned_rect(card)), theme)
        owned = parse_owned_count(owned_text)

        value = None
        if self.lookup is not None:
            found = self.lookup(name)
            if found is not None:
                name, value = found

        return Reward(name=name, owned=owned, rarity=rarity, value=value, slot=slot)

    def read_timer(self, capture: View, frame: ReferenceFrame, layout: CardLayout) -> int:
        """Countdown timer above the card row (0 when unreadable)"""
        center_x = None
        if not layout.empty:
            center_x = int(round(sum(layout.slot_centers) / layout.count))
        region = capture.sub_rect(frame.timer_rect(center_x))
        if region.empty:
            return 0
        # Timer digits are always white, whatever the theme
        return parse_timer(self.extractor.extract_text(region, Theme.WHITE))

    def detect_selected(
        self,
        capture: Capture,
        theme: Theme,
        layout: Optional[CardLayout] = None,
        max_deviation: Optional[float] = None
    ) -> Optional[int]:
        """
        Index of the highlighted card

        The card whose top-right corner is closest to the theme's secondary
        color wins. With no ceiling (the default) the best slot is always
        returned; None only when there are no slots, or when the best
        deviation exceeds `max_deviation` / settings.selection_max_deviation.
        """
        view = self._view(capture)
        if view is None:
            return None
        if layout is None:
            layout = self.layouts.infer(view)
        if max_deviation is None:
            max_deviation = self.settings.selection_max_deviation

        frame = self._frame(view)
        best_index = None
        best_deviation = float('inf')
        for slot in range(layout.count):
            card = frame.card_rect(layout.slot_centers[slot])
            patch = view.sub_rect(frame.selection_rect(card))
            if patch.empty:
                continue
            deviation = patch.average_color().deviation(theme.secondary)
            if deviation < best_deviation:
                best_index, best_deviation = slot, deviation

        if best_index is not None and max_deviation is not None and best_deviation > max_deviation:
            logger.debug("Selection rejected: deviation %.2f > %.2f", best_deviation, max_deviation)
            return None
        return best_index

