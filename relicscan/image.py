"""
Pixel buffers and borrowed views

A PixelBuffer owns an RGB numpy array. A View is a rectangle over a buffer;
cropping a view never copies pixels, it only narrows the rectangle, so the
whole pipeline can slice one capture many times for free.
"""
import io
import math
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image

from .color import Color, luma_array, pairwise_deviation
from .geometry import Rect


class Mask:
    """
    Packed bitset marking which pixels of an icon take part in matching

    Row-major, one bit per pixel, least significant bit first in each byte.
    """

    def __init__(self, bits: bytes, width: int, height: int):
        self.bits = bytes(bits)
        self.width = width
        self.height = height

    @classmethod
    def from_bool(cls, array: np.ndarray) -> 'Mask':
        array = np.asarray(array, dtype=bool)
        height, width = array.shape[:2]
        bits = np.packbits(array.ravel(), bitorder='little')
        return cls(bits.tobytes(), width, height)

    @classmethod
    def full(cls, width: int, height: int) -> 'Mask':
        return cls.from_bool(np.ones((height, width), dtype=bool))

    def to_bool(self) -> np.ndarray:
        count = self.width * self.height
        flat = np.unpackbits(np.frombuffer(self.bits, dtype=np.uint8), bitorder='little')
        return flat[:count].astype(bool).reshape(self.height, self.width)

    def resized(self, width: int, height: int) -> 'Mask':
        """Nearest-neighbour resize (masks must stay binary)"""
        if (width, height) == (self.width, self.height):
            return self
        src = self.to_bool().astype(np.uint8)
        dst = cv2.resize(src, (max(1, width), max(1, height)), interpolation=cv2.INTER_NEAREST)
        return Mask.from_bool(dst > 0)

    @property
    def count(self) -> int:
        return int(self.to_bool().sum())


class PixelBuffer:
    """Owned RGB image stored as a (height, width, 3) uint8 array"""

    def __init__(self, data: np.ndarray):
        data = np.asarray(data, dtype=np.uint8)
        if data.ndim == 2:
            data = np.repeat(data[:, :, None], 3, axis=2)
        if data.ndim != 3 or data.shape[2] < 3:
            raise ValueError(f"expected an (h, w, 3) array, got shape {data.shape}")
        self.data = np.ascontiguousarray(data[:, :, :3])

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    def __len__(self) -> int:
        return self.width * self.height

    @classmethod
    def empty(cls) -> 'PixelBuffer':
        return cls(np.zeros((0, 0, 3), dtype=np.uint8))

    @classmethod
    def from_raw(cls, width: int, raw: bytes, channels: int = 4) -> 'PixelBuffer':
        """
        Build a buffer from tightly packed capture bytes

        Args:
            width: Row width in pixels
            raw: RGBA (default) or RGB bytes, top-left origin, row-major
            channels: Bytes per pixel (4 = alpha is discarded)
        """
        if width <= 0:
            return cls.empty()
        flat = np.frombuffer(raw, dtype=np.uint8)
        height = len(flat) // (width * channels)
        if height == 0:
            return cls.empty()
        flat = flat[:width * height * channels]
        return cls(flat.reshape(height, width, channels)[:, :, :3])

    @classmethod
    def from_encoded(cls, data: bytes) -> 'PixelBuffer':
        """Decode PNG/JPEG/... bytes"""
        with Image.open(io.BytesIO(data)) as img:
            return cls(np.array(img.convert('RGB')))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'PixelBuffer':
        return cls.from_encoded(Path(path).read_bytes())

    @classmethod
    def from_png_mask(cls, data: bytes, alpha_threshold: int = 128) -> Tuple['PixelBuffer', Mask]:
        """
        Decode an RGBA image into a buffer and an alpha mask

        A pixel is part of the mask when its alpha is >= `alpha_threshold`.
        """
        with Image.open(io.BytesIO(data)) as img:
            rgba = np.array(img.convert('RGBA'))
        return cls(rgba[:, :, :3]), Mask.from_bool(rgba[:, :, 3] >= alpha_threshold)

    def resized(self, width: int, height: int) -> 'PixelBuffer':
        """Catmull-Rom resize to an explicit size"""
        width = max(1, int(width))
        height = max(1, int(height))
        if len(self) == 0:
            return PixelBuffer(np.zeros((height, width, 3), dtype=np.uint8))
        if (width, height) == (self.width, self.height):
            return PixelBuffer(self.data.copy())
        # Pillow's bicubic kernel uses a = -0.5, i.e. Catmull-Rom
        img = Image.fromarray(self.data).resize((width, height), Image.Resampling.BICUBIC)
        return PixelBuffer(np.array(img))

    def resize_to_height(self, height: int) -> 'PixelBuffer':
        """Resize to the given height, preserving aspect ratio"""
        height = max(1, int(height))
        width = max(1, int(round(self.width * height / max(1, self.height))))
        return self.resized(width, height)

    def map_pixels(self, func: Callable[[np.ndarray], np.ndarray]) -> None:
        """Replace every pixel in place with func(pixels) for the whole (h, w, 3) array"""
        self.data[...] = np.asarray(func(self.data), dtype=np.uint8)

    def as_view(self) -> 'View':
        return View(self, 0, 0, self.width, self.height)

    def save_png(self, path: Union[str, Path]) -> None:
        self.as_view().save_png(path)


class View:
    """
    Borrowed rectangular window into a PixelBuffer

    Coordinates are absolute buffer coordinates; `true_width` is the stride of
    the backing buffer. All trim/crop helpers clamp to the available extent
    and never raise.
    """
    __slots__ = ('buffer', 'x1', 'y1', 'x2', 'y2')

    def __init__(self, buffer: PixelBuffer, x1: int, y1: int, x2: int, y2: int):
        self.buffer = buffer
        self.x1 = x1
        self.y1 = y1
        self.x2 = x2
        self.y2 = y2

    def __repr__(self) -> str:
        return f"View(x1={self.x1}, y1={self.y1}, x2={self.x2}, y2={self.y2})"

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def true_width(self) -> int:
        return self.buffer.width

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def array(self) -> np.ndarray:
        """Zero-copy numpy view of the pixels"""
        return self.buffer.data[self.y1:self.y2, self.x1:self.x2]

    @property
    def rect(self) -> Rect:
        return Rect(self.x1, self.y1, self.width, self.height)

    def _with(self, x1: int, y1: int, x2: int, y2: int) -> 'View':
        return View(self.buffer, x1, y1, x2, y2)

    def trimmed_left(self, width: int) -> 'View':
        """Same height, `width` wide, aligned left"""
        size = min(max(0, width), self.width)
        return self._with(self.x1, self.y1, self.x1 + size, self.y2)

    def trimmed_right(self, width: int) -> 'View':
        """Same height, `width` wide, aligned right"""
        size = min(max(0, width), self.width)
        return self._with(self.x2 - size, self.y1, self.x2, self.y2)

    def trimmed_centerh(self, width: int) -> 'View':
        """Same height, `width` wide (rounded down to even), centred"""
        size = min(max(0, width), self.width)
        size = (size >> 1) << 1
        spacing = (self.width - size) // 2
        return self._with(self.x1 + spacing, self.y1, self.x1 + spacing + size, self.y2)

    def trimmed_top(self, height: int) -> 'View':
        size = min(max(0, height), self.height)
        return self._with(self.x1, self.y1, self.x2, self.y1 + size)

    def trimmed_bottom(self, height: int) -> 'View':
        size = min(max(0, height), self.height)
        return self._with(self.x1, self.y2 - size, self.x2, self.y2)

    def trimmed_centerv(self, height: int) -> 'View':
        size = min(max(0, height), self.height)
        size = (size >> 1) << 1
        spacing = (self.height - size) // 2
        return self._with(self.x1, self.y1 + spacing, self.x2, self.y1 + spacing + size)

    def sub_image(self, x: int, y: int, width: int, height: int) -> 'View':
        """Arbitrary sub-rectangle in view-relative coordinates, clamped"""
        x = min(max(0, x), self.width)
        y = min(max(0, y), self.height)
        width = min(max(0, width), self.width - x)
        height = min(max(0, height), self.height - y)
        return self._with(self.x1 + x, self.y1 + y, self.x1 + x + width, self.y1 + y + height)

    def sub_rect(self, rect: Rect) -> 'View':
        # Clip negative origins instead of shifting the rectangle
        x, y, w, h = rect.to_tuple()
        if x < 0:
            w += x
            x = 0
        if y < 0:
            h += y
            y = 0
        return self.sub_image(x, y, w, h)

    def to_buffer(self) -> PixelBuffer:
        return PixelBuffer(self.array.copy())

    def get_bytes(self) -> bytes:
        return self.array.tobytes()

    def luma(self) -> np.ndarray:
        return luma_array(self.array)

    def average_color(self) -> Color:
        if self.empty:
            return Color.BLACK
        sums = self.array.reshape(-1, 3).sum(axis=0, dtype=np.uint64)
        count = self.width * self.height
        return Color(*(int(v) // count for v in sums))

    def average_color_masked(self, mask: Mask) -> Color:
        if (mask.width, mask.height) != (self.width, self.height):
            return Color.BLACK
        selected = self.array[mask.to_bool()]
        if len(selected) == 0:
            return Color.BLACK
        sums = selected.sum(axis=0, dtype=np.uint64)
        return Color(*(int(v) // len(selected) for v in sums))

    def average_deviation_masked(self, other: 'View', mask: Mask) -> float:
        """
        Mean color deviation against another view over the masked pixels

        Returns infinity when the two views (or the mask) differ in shape.
        """
        if (self.width, self.height) != (other.width, other.height):
            return math.inf
        if (mask.width, mask.height) != (self.width, self.height):
            return math.inf
        selected = mask.to_bool()
        if not selected.any():
            return 0.0
        deviation = pairwise_deviation(self.array[selected], other.array[selected])
        return float(deviation.mean())

    def save_png(self, path: Union[str, Path]) -> None:
        Image.fromarray(np.ascontiguousarray(self.array)).save(str(path), format='PNG')


def load_icon(path: Union[str, Path], alpha_threshold: int = 128) -> Tuple[PixelBuffer, Mask]:
    """Load an RGBA icon file as (buffer, mask); raises when the file is missing or unreadable"""
    return PixelBuffer.from_png_mask(Path(path).read_bytes(), alpha_threshold)


def as_view(image: Union[PixelBuffer, View, np.ndarray, None]) -> Optional[View]:
    """Accept a buffer, a view or a raw array wherever a capture is expected"""
    if image is None:
        return None
    if isinstance(image, View):
        return image
    if isinstance(image, PixelBuffer):
        return image.as_view()
    return PixelBuffer(image).as_view()
