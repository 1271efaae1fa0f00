"""
Color metrics shared by every matcher in the pipeline
"""
from dataclasses import dataclass

import numpy as np


# Rec. 709 luma weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)

# Mean channel difference that maps to a deviation of exactly 1.0
DEVIATION_UNIT = 0.05


@dataclass(frozen=True)
class Color:
    """An RGB color"""
    r: int
    g: int
    b: int

    def deviation(self, other: 'Color') -> float:
        """
        Perceptual deviation between two colors

        Not a Euclidean distance: the mean channel difference is normalised
        and cubed, so compression noise stays close to zero while real
        differences blow up quickly.
        """
        diff = (
            abs(self.r - other.r) / 255.0 / 3.0
            + abs(self.g - other.g) / 255.0 / 3.0
            + abs(self.b - other.b) / 255.0 / 3.0
        )
        return (diff / DEVIATION_UNIT) ** 3

    def luma(self) -> int:
        """Grayscale intensity (0-255)"""
        return int(0.2126 * self.r + 0.7152 * self.g + 0.0722 * self.b)

    def to_tuple(self) -> tuple:
        return (self.r, self.g, self.b)

    @classmethod
    def from_sequence(cls, values) -> 'Color':
        r, g, b = (int(v) for v in list(values)[:3])
        return cls(r, g, b)


Color.WHITE = Color(255, 255, 255)
Color.BLACK = Color(0, 0, 0)


def deviation_array(pixels: np.ndarray, color: Color) -> np.ndarray:
    """Deviation of every pixel of an (..., 3) array from a single color"""
    ref = np.array(color.to_tuple(), dtype=np.float32)
    diff = np.abs(pixels.astype(np.float32) - ref).sum(axis=-1) / 255.0 / 3.0
    return (diff / DEVIATION_UNIT) ** 3


def pairwise_deviation(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Per-pixel deviation between two (..., 3) arrays of the same shape"""
    diff = np.abs(a.astype(np.float32) - b.astype(np.float32)).sum(axis=-1) / 255.0 / 3.0
    return (diff / DEVIATION_UNIT) ** 3


def luma_array(pixels: np.ndarray) -> np.ndarray:
    """Luma of every pixel of an (..., 3) array, as float32 in 0-255"""
    return pixels.astype(np.float32) @ LUMA_WEIGHTS
