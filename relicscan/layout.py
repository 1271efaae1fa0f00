"""
Card layout inference
Figures out how many reward cards are shown and the rarity of each, without
any fixed pixel coordinates. The card row is always centred and evenly
spaced, so the detector simply tries every possible card count and keeps
the hypothesis whose rarity icons match best.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .geometry import MAX_CARDS, ReferenceFrame
from .image import View
from .settings import DetectionSettings
from .template_matcher import MatchResult, Rarity, RarityIcon, TemplateMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CardLayout:
    """Inferred number and kind of reward cards in one frame"""
    count: int = 0
    rarity_per_slot: Tuple[Rarity, ...] = ()
    match_confidence: Tuple[float, ...] = ()  # per-slot deviation, lower is better
    slot_centers: Tuple[int, ...] = ()  # icon centre x per slot, capture pixels
    hits: int = 0  # slots that matched cleanly at their expected position

    @property
    def empty(self) -> bool:
        return self.count == 0


@dataclass
class Hypothesis:
    """One candidate card count and the best match at each expected slot"""
    count: int
    matches: List[MatchResult] = field(default_factory=list)
    threshold: float = 0.0

    @property
    def hit_matches(self) -> List[MatchResult]:
        return [m for m in self.matches if m.is_hit(self.threshold)]

    @property
    def hits(self) -> int:
        return len(self.hit_matches)

    @property
    def mean_deviation(self) -> float:
        hits = self.hit_matches
        if not hits:
            return math.inf
        return sum(m.score for m in hits) / len(hits)

    def rank(self) -> tuple:
        # More hits first, then lower deviation, then the larger count
        return (self.hits, -self.mean_deviation, self.count)

    def to_layout(self) -> CardLayout:
        return CardLayout(
            count=self.count,
            rarity_per_slot=tuple(m.rarity for m in self.matches),
            match_confidence=tuple(m.score for m in self.matches),
            slot_centers=tuple(m.center[0] for m in self.matches),
            hits=self.hits,
        )


def cluster_matches(matches: List[MatchResult], gap: int) -> List[List[MatchResult]]:
    """Group scan matches whose centres are at most `gap` px apart"""
    clusters: List[List[MatchResult]] = []
    for match in sorted(matches, key=lambda m: m.center[0]):
        if clusters and match.center[0] - clusters[-1][-1].center[0] <= gap:
            clusters[-1].append(match)
        else:
            clusters.append([match])
    return clusters


class LayoutDetector:
    """
    Card count and rarity inference from rarity icon matches

    Args:
        matcher: Matcher holding the rarity icons
        settings: Detection thresholds (ui_scale, icon_accept, scan_accept)
    """

    def __init__(self, matcher: TemplateMatcher, settings: Optional[DetectionSettings] = None):
        self.matcher = matcher
        self.settings = settings or DetectionSettings()

    def frame_for(self, capture: View) -> ReferenceFrame:
        return ReferenceFrame(capture.width, capture.height, self.settings.ui_scale)

    def evaluate(
        self,
        capture: View,
        frame: ReferenceFrame,
        icons: List[RarityIcon],
        count: int
    ) -> Hypothesis:
        """Score the hypothesis that exactly `count` cards are shown"""
        top = frame.icon_top()
        matches = [
            self.matcher.best_match(capture, icons, center_x, top)
            for center_x in frame.slot_centers(count)
        ]
        return Hypothesis(count, matches, self.settings.icon_accept)

    def infer(self, capture: View) -> CardLayout:
        """
        Infer the card layout of a capture

        Returns the empty layout when nothing resembling a rarity icon is found.
        """
        if capture.empty:
            return CardLayout()

        frame = self.frame_for(capture)
        icons = self.matcher.scaled_icons(frame.scale)

        hypotheses = [self.evaluate(capture, frame, icons, n) for n in range(1, MAX_CARDS + 1)]
        best = max(hypotheses, key=Hypothesis.rank)
        logger.debug(
            "Layout hypotheses: %s",
            ", ".join(f"{h.count}:{h.hits}/{h.mean_deviation:.3f}" for h in hypotheses),
        )

        if best.hits == best.count:
            return best.to_layout()

        layout = self._scan_layout(capture, frame, icons)
        if layout is not None:
            logger.debug("Layout from strip scan: %d card(s)", layout.count)
            return layout

        if best.hits == 0:
            return CardLayout()

        # Scan found nothing: fall back to the clean hits of the winner
        hits = best.hit_matches
        return CardLayout(
            count=len(hits),
            rarity_per_slot=tuple(m.rarity for m in hits),
            match_confidence=tuple(m.score for m in hits),
            slot_centers=tuple(m.center[0] for m in hits),
            hits=len(hits),
        )

    def _scan_layout(
        self,
        capture: View,
        frame: ReferenceFrame,
        icons: List[RarityIcon]
    ) -> Optional[CardLayout]:
        """Count cards by clustering icon matches along the whole strip"""
        width = max(icon.width for icon in icons)
        matches = self.matcher.scan(
            capture,
            icons,
            frame.scan_span(width),
            frame.icon_top(),
            self.settings.scan_accept,
        )
        clusters = cluster_matches(matches, frame.cluster_gap())
        if not clusters:
            return None

        slots = [min(cluster, key=lambda m: m.score) for cluster in clusters]
        if len(slots) > MAX_CARDS:
            slots = sorted(slots, key=lambda m: m.score)[:MAX_CARDS]
            slots.sort(key=lambda m: m.center[0])

        return CardLayout(
            count=len(slots),
            rarity_per_slot=tuple(m.rarity for m in slots),
            match_confidence=tuple(m.score for m in slots),
            slot_centers=tuple(m.center[0] for m in slots),
            hits=sum(1 for m in slots if m.is_hit(self.settings.icon_accept)),
        )
