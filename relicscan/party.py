"""
Party header reading
The squad header shows the mission/screen title next to the player avatars;
reading it is a cheap signal that the reward screen is up.
"""
from typing import Optional

from rapidfuzz.distance import Levenshtein

from .image import View
from .ocr import TextExtractor
from .theme import Theme

# Party avatar grid (1920x1080 reference)
AVATAR_X = 96
AVATAR_Y = 40
AVATAR_SIZE = 94
AVATAR_SPACING_X = 324
AVATAR_SPACING_Y = 175

# Player name box, relative to the avatar origin
NAME_X = 115
NAME_Y = 124
NAME_W = 210
NAME_H = 24

# Avatars further than this from both theme colors are treated as absent
AVATAR_MAX_DEVIATION = 20.0


def party_header_text(capture: View, theme: Theme, extractor: TextExtractor) -> Optional[str]:
    """
    First non-empty name text in the 2x2 party grid

    Returns None when no avatar slot is present or no text could be read.
    """
    if capture.empty:
        return None
    sx = capture.width / 1920.0
    sy = capture.height / 1080.0

    def px(value: float, scale: float) -> int:
        return max(1, int(round(value * scale)))

    for i in range(4):
        gx, gy = i % 2, i // 2
        x = px(AVATAR_X, sx) + gx * px(AVATAR_SPACING_X, sx)
        y = px(AVATAR_Y, sy) + gy * px(AVATAR_SPACING_Y, sy)

        avatar = capture.sub_image(x, y, px(AVATAR_SIZE, sx), px(AVATAR_SIZE, sy)).average_color()
        if (avatar.deviation(theme.primary) > AVATAR_MAX_DEVIATION
                and avatar.deviation(theme.secondary) > AVATAR_MAX_DEVIATION):
            continue

        name = capture.sub_image(
            x + px(NAME_X, sx), y + px(NAME_Y, sy), px(NAME_W, sx), px(NAME_H, sy)
        )
        text = extractor.extract_text(name, theme).strip()
        if text:
            return text

    return None


def header_matches(header: str, expected: str, threshold: int = 3) -> bool:
    """
    Loose comparison of an OCR'd header against an expected title

    Matches when equal, when equal after dropping trailing words, or when
    the edit distance is at most `threshold`.
    """
    header = header.lower()
    expected = expected.lower()
    if header == expected:
        return True

    end = len(header)
    while True:
        end = header.rfind(' ', 0, end)
        if end < 0:
            break
        if header[:end] == expected:
            return True

    return Levenshtein.distance(header, expected) <= threshold
