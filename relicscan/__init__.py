"""
Screen recognition engine for the relic reward screen
"""
from .color import Color
from .image import PixelBuffer, View, Mask
from .theme import Theme, sample_theme
from .settings import DetectionSettings
from .template_matcher import TemplateMatcher, Rarity, RarityIcon, MatchResult
from .layout import LayoutDetector, CardLayout
from .ocr import OCREngine, TextExtractor, TextResult
from .detector import RewardScreenDetector, Reward, Rewards
from .items import ItemDatabase, ItemValue
from .tracker import RewardTracker, FrameWorker

__all__ = [
    'Color', 'PixelBuffer', 'View', 'Mask', 'Theme', 'sample_theme',
    'DetectionSettings', 'TemplateMatcher', 'Rarity', 'RarityIcon',
    'LayoutDetector', 'CardLayout', 'OCREngine', 'TextExtractor',
    'RewardScreenDetector', 'Reward', 'Rewards', 'ItemDatabase', 'ItemValue',
    'RewardTracker', 'FrameWorker',
]
