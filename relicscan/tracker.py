"""
Reward session tracking
Turns a stream of reward-screen frames into "these are the rewards on offer"
and "this one was picked" events, and keeps a tally of picks for the session.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .detector import Capture, Reward, RewardScreenDetector
from .image import View
from .layout import CardLayout
from .ocr import TextExtractor
from .party import header_matches, party_header_text
from .theme import Theme

logger = logging.getLogger(__name__)

FORMA_BLUEPRINT = "Forma Blueprint"
REWARD_SCREEN_TITLE = "void fissure/rewards"


@dataclass
class TrackerUpdate:
    """What a processed frame meant, and when the next poll is worth doing"""
    kind: str  # "idle", "rewards" or "selection"
    delay: float = 0.0
    selected: Optional[str] = None


def split_amount(name: str) -> Tuple[str, int]:
    """Some rewards read as "2 X <Name>"; return (name, amount)"""
    if name.upper().startswith("2 X "):
        return name[4:], 2
    return name, 1


class RewardTracker:
    """
    Session tracker for the relic reward screen

    A frame whose timer still has time left publishes the rewards on offer;
    a frame near or past the end of the countdown reads the selection and
    adds it to the session tally.

    Args:
        detector: Reward screen detector
        theme: Sampled UI theme
        valued_forma: Show a platinum value for Forma Blueprints
    """

    def __init__(self, detector: RewardScreenDetector, theme: Theme, valued_forma: bool = False):
        self.detector = detector
        self.theme = theme
        self.valued_forma = valued_forma
        self.current_rewards: List[Reward] = []
        self.selected_rewards: Dict[str, int] = {}

    @property
    def settings(self):
        return self.detector.settings

    def process(self, capture: Capture) -> TrackerUpdate:
        """Handle one frame of the reward screen"""
        rewards = self.detector.detect_rewards(capture, self.theme)
        if not rewards.present:
            return TrackerUpdate("idle")

        if rewards.timer >= self.settings.timer_min_seconds:
            self.current_rewards = list(rewards.rewards)
            # Poll again shortly before the timer runs out to catch the pick
            delay = float(max(0, rewards.timer - 2))
            logger.info(
                "Rewards on offer: %s (timer %ds)",
                ", ".join(r.name for r in self.current_rewards), rewards.timer,
            )
            return TrackerUpdate("rewards", delay)

        return self.handle_selection(capture, rewards.layout)

    def handle_selection(self, capture: Capture, layout: Optional[CardLayout] = None) -> TrackerUpdate:
        """Read the highlighted card and add it to the tally"""
        index = self.detector.detect_selected(capture, self.theme, layout)
        picked = None
        if index is not None:
            for reward in self.current_rewards:
                if reward.slot == index:
                    name, amount = split_amount(reward.name)
                    self.selected_rewards[name] = self.selected_rewards.get(name, 0) + amount
                    picked = name
                    break

        if picked:
            logger.info("Selected reward: %s", picked)
        self.current_rewards = []
        # Give the game time to leave the reward screen
        return TrackerUpdate("selection", self.settings.selection_pause_seconds, picked)

    def owned_total(self, reward: Reward) -> int:
        """Owned count shown on the card plus picks made this session"""
        name, _ = split_amount(reward.name)
        return reward.owned + self.selected_rewards.get(name, 0)

    def platinum(self, reward: Reward) -> float:
        if reward.value is None:
            return 0.0
        if FORMA_BLUEPRINT in reward.name and not self.valued_forma:
            return 0.0
        return reward.value.platinum

    def clear_selected(self):
        self.selected_rewards.clear()

    def on_reward_screen(self, capture: View, extractor: Optional[TextExtractor] = None) -> bool:
        """Whether the party header reads as the void fissure reward screen"""
        extractor = extractor or self.detector.extractor
        header = party_header_text(capture, self.theme, extractor)
        return header is not None and header_matches(header, REWARD_SCREEN_TITLE)


class FrameWorker:
    """
    Runs the tracker on a single background thread

    Frames submitted while the previous one is still being processed are
    dropped rather than queued, so a slow OCR pass never builds a backlog.
    """

    def __init__(
        self,
        tracker: RewardTracker,
        on_update: Optional[Callable[[TrackerUpdate], None]] = None
    ):
        self.tracker = tracker
        self.on_update = on_update
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="relicscan")
        self._pending: Optional[Future] = None
        self._lock = threading.Lock()

    def submit(self, capture: Capture) -> Optional[Future]:
        """Queue a frame; returns None when it was dropped"""
        with self._lock:
            if self._pending is not None and not self._pending.done():
                return None
            self._pending = self.executor.submit(self._run, capture)
            return self._pending

    def _run(self, capture: Capture) -> TrackerUpdate:
        update = self.tracker.process(capture)
        if self.on_update is not None:
            self.on_update(update)
        return update

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
