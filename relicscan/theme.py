"""
UI theme colors sampled from the in-game options screen
"""
from dataclasses import dataclass
from typing import Any, Dict

from .color import Color
from .geometry import THEME_PRIMARY_REGION, THEME_SECONDARY_REGION, scale_region
from .image import View


@dataclass(frozen=True)
class Theme:
    """
    Two reference colors of the active UI theme

    The primary color is the accent used for text and bars, the secondary
    color is the one used for highlights (selection boxes, mouse-over).
    A Theme is sampled once and passed explicitly into every detection call.
    """
    primary: Color
    secondary: Color

    @classmethod
    def from_options(cls, image: View) -> 'Theme':
        """Sample the theme from a capture of the options screen"""
        w = max(1, image.width)
        h = max(1, image.height)
        return cls(
            primary=image.sub_image(*scale_region(THEME_PRIMARY_REGION, w, h)).average_color(),
            secondary=image.sub_image(*scale_region(THEME_SECONDARY_REGION, w, h)).average_color(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": list(self.primary.to_tuple()),
            "secondary": list(self.secondary.to_tuple()),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Theme':
        return cls(
            primary=Color.from_sequence(data.get("primary", Color.WHITE.to_tuple())),
            secondary=Color.from_sequence(data.get("secondary", Color.WHITE.to_tuple())),
        )


Theme.WHITE = Theme(Color.WHITE, Color.WHITE)


def sample_theme(capture: View) -> Theme:
    """Average the two calibration regions of an options-screen capture"""
    return Theme.from_options(capture)
