"""
OCR (Optical Character Recognition) for reading reward screen text
The recognition engine is an external capability; this module wraps the
available engine and runs several preprocessing candidates through it,
keeping whichever string looks most like real text.
"""
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .color import deviation_array, luma_array
from .image import PixelBuffer, View
from .settings import DetectionSettings
from .theme import Theme

logger = logging.getLogger(__name__)

# recognize(pixels, width, height) -> [(text, confidence), ...]
Recognizer = Callable[[np.ndarray, int, int], List[Tuple[str, float]]]

_WHITESPACE = re.compile(r'\s+')


class OCREngine:
    """
    Text recognition engine adapter

    Uses either:
    - PaddleOCR (if installed)
    - Tesseract OCR (if installed)
    - nothing, in which case every region reads as empty
    """

    def __init__(self, lang: str = 'en', prefer: Optional[str] = None):
        self.lang = lang
        self.engine = None
        self.engine_type = 'none'
        self._init_ocr_engine(prefer)

    def _init_ocr_engine(self, prefer: Optional[str]):
        """Initialize the best available OCR engine"""
        order = ['paddle', 'tesseract']
        if prefer in order:
            order.remove(prefer)
            order.insert(0, prefer)

        for name in order:
            if name == 'paddle':
                try:
                    from paddleocr import PaddleOCR
                    self.engine = PaddleOCR(use_angle_cls=False, lang=self.lang, show_log=False)
                    self.engine_type = 'paddle'
                    break
                except ImportError:
                    continue
            elif name == 'tesseract':
                try:
                    import pytesseract
                    pytesseract.get_tesseract_version()
                    self.engine = pytesseract
                    self.engine_type = 'tesseract'
                    break
                except ImportError:
                    continue
                except Exception as e:
                    logger.warning("Tesseract unavailable: %s", e)
                    continue

        logger.info("OCR engine: %s", self.engine_type)

    def __call__(self, pixels: np.ndarray, width: int, height: int) -> List[Tuple[str, float]]:
        return self.recognize(pixels, width, height)

    def recognize(self, pixels: np.ndarray, width: int, height: int) -> List[Tuple[str, float]]:
        """
        Read text spans from an RGB image

        Args:
            pixels: (height, width, 3) uint8 RGB array
            width: Image width
            height: Image height
        """
        if self.engine_type == 'paddle':
            return self._read_paddle(pixels)
        elif self.engine_type == 'tesseract':
            return self._read_tesseract(pixels)
        else:
            return []

    def _read_paddle(self, image: np.ndarray) -> List[Tuple[str, float]]:
        """Read text using PaddleOCR"""
        results = []

        try:
            ocr_result = self.engine.ocr(image, cls=False)
        except Exception as e:
            logger.debug("PaddleOCR failed: %s", e)
            return results

        for block in ocr_result or []:
            for line in block or []:
                text_info = line[1]  # (text, confidence)
                text = str(text_info[0] or '').strip()
                if text:
                    results.append((text, float(text_info[1])))

        return results

    def _read_tesseract(self, image: np.ndarray) -> List[Tuple[str, float]]:
        """Read text using Tesseract"""
        results = []
        lang = 'eng' if self.lang == 'en' else self.lang

        try:
            data = self.engine.image_to_data(
                image,
                lang=lang,
                config='--psm 6',
                output_type=self.engine.Output.DICT
            )
        except Exception as e:
            logger.debug("Tesseract failed: %s", e)
            return results

        for raw, conf in zip(data['text'], data['conf']):
            text = str(raw).strip()
            conf = float(conf)
            if text and conf > 0:
                results.append((text, conf / 100.0))

        return results


# ---------- preprocessing candidates ----------

Binarizer = Callable[[np.ndarray, Theme], np.ndarray]


def theme_binarizer(threshold: float) -> Binarizer:
    """Foreground = pixels within `threshold` deviation of either theme color"""
    def binarize(pixels: np.ndarray, theme: Theme) -> np.ndarray:
        return (
            (deviation_array(pixels, theme.primary) < threshold)
            | (deviation_array(pixels, theme.secondary) < threshold)
        )
    return binarize


# Luma range below which a crop is treated as blank by the global thresholds
MIN_CONTRAST = 24
# Binarized candidates with more foreground than this are not text
MAX_FOREGROUND = 0.9

ADAPTIVE_BLOCK = 31
ADAPTIVE_OFFSET = 10


def _gray(pixels: np.ndarray) -> Optional[np.ndarray]:
    """Luma as uint8, None when the crop has no usable contrast"""
    gray = np.clip(luma_array(pixels), 0, 255).astype(np.uint8)
    if int(gray.max()) - int(gray.min()) < MIN_CONTRAST:
        return None
    return gray


def otsu_binarizer(pixels: np.ndarray, theme: Theme) -> np.ndarray:
    """Foreground = bright side of a global Otsu threshold (theme independent)"""
    gray = _gray(pixels)
    if gray is None:
        return np.zeros(pixels.shape[:2], dtype=bool)
    gray = cv2.equalizeHist(gray)
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary > 0


def adaptive_binarizer(pixels: np.ndarray, theme: Theme) -> np.ndarray:
    """Foreground = pixels brighter than their neighbourhood (gradients, translucent panels)"""
    gray = _gray(pixels)
    if gray is None:
        return np.zeros(pixels.shape[:2], dtype=bool)
    binary = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY,
        ADAPTIVE_BLOCK, -ADAPTIVE_OFFSET
    )
    return binary > 0


@dataclass(frozen=True)
class Preprocess:
    """One OCR preprocessing candidate"""
    name: str
    binarize: Optional[Binarizer]  # None = raw crop
    dark_on_light: bool = True


def build_candidates(theme_thresholds: Sequence[float]) -> Tuple[Preprocess, ...]:
    """Candidate table, tried in order: raw, theme-guided, Otsu, then adaptive"""
    candidates = [Preprocess("raw", None, False)]
    for threshold in theme_thresholds:
        binarize = theme_binarizer(threshold)
        candidates.append(Preprocess(f"theme-{threshold:g}-dark", binarize, True))
        candidates.append(Preprocess(f"theme-{threshold:g}-light", binarize, False))
    candidates.append(Preprocess("otsu-dark", otsu_binarizer, True))
    candidates.append(Preprocess("otsu-light", otsu_binarizer, False))
    candidates.append(Preprocess("adaptive-dark", adaptive_binarizer, True))
    candidates.append(Preprocess("adaptive-light", adaptive_binarizer, False))
    return tuple(candidates)


_DILATE_KERNEL = np.ones((3, 3), np.uint8)


def render_candidate(base: np.ndarray, candidate: Preprocess, theme: Theme) -> Optional[np.ndarray]:
    """
    Apply one candidate to an (already upscaled) RGB crop

    Returns None when the binarization swallowed the whole crop.
    """
    pad = max(4, base.shape[0] // 8)
    if candidate.binarize is None:
        return cv2.copyMakeBorder(base, pad, pad, pad, pad, cv2.BORDER_REPLICATE)

    mask = candidate.binarize(base, theme).astype(np.uint8)
    if mask.size and mask.mean() > MAX_FOREGROUND:
        return None
    # Grow strokes by one ring so thin glyphs survive thresholding noise
    mask = cv2.dilate(mask, _DILATE_KERNEL, iterations=1)

    fg, bg = (0, 255) if candidate.dark_on_light else (255, 0)
    gray = np.where(mask > 0, fg, bg).astype(np.uint8)
    gray = cv2.copyMakeBorder(gray, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=bg)
    return np.repeat(gray[:, :, None], 3, axis=2)


# ---------- scoring ----------

def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(' ', text).strip()


def score_text(text: str, confidence: float, confidence_weight: float = 2.0) -> float:
    """
    Plausibility score of an OCR string

    Alphanumerics count for more the denser they are, symbols count against,
    strings under three characters are capped at 1, and the engine's own
    confidence is added on top.
    """
    text = normalize_whitespace(text)
    chars = [c for c in text if not c.isspace()]
    score = 0.0
    if chars:
        alnum = sum(1 for c in chars if c.isalnum())
        symbols = len(chars) - alnum
        score = alnum * (alnum / len(chars)) - 1.5 * symbols
        if len(chars) < 3:
            score = min(score, 1.0)
    return score + confidence_weight * confidence


@dataclass(frozen=True)
class TextResult:
    """Best OCR reading of a region"""
    text: str = ""
    confidence: float = 0.0
    score: float = 0.0
    strategy: str = "none"


class TextExtractor:
    """
    Multi-candidate text extraction

    Args:
        recognizer: The recognition capability (e.g. an OCREngine)
        settings: Detection settings (candidate thresholds, early exit)
    """

    def __init__(self, recognizer: Recognizer, settings: Optional[DetectionSettings] = None):
        self.recognizer = recognizer
        self.settings = settings or DetectionSettings()
        self.candidates = build_candidates(self.settings.ocr_theme_thresholds)

    def _recognize(self, pixels: np.ndarray) -> Tuple[str, float]:
        """Run the engine once; any failure reads as ("", 0.0)"""
        height, width = pixels.shape[:2]
        try:
            spans = self.recognizer(np.ascontiguousarray(pixels), width, height) or []
        except Exception as e:
            logger.debug("Recognizer raised %s: %s", type(e).__name__, e)
            return "", 0.0

        texts = [str(text) for text, _ in spans if str(text).strip()]
        if not texts:
            return "", 0.0
        confidence = sum(float(conf) for text, conf in spans if str(text).strip()) / len(texts)
        return normalize_whitespace(' '.join(texts)), confidence

    def prepare(self, view: View) -> np.ndarray:
        """Copy the crop and upscale it so its short edge reaches the working size"""
        buffer = view.to_buffer()
        short_edge = min(buffer.width, buffer.height)
        minimum = self.settings.ocr_min_short_edge
        if 0 < short_edge < minimum:
            factor = minimum / short_edge
            buffer = buffer.resized(int(round(buffer.width * factor)), int(round(buffer.height * factor)))
        return buffer.data

    def extract(self, view: View, theme: Theme) -> TextResult:
        """Best reading of a region believed to contain text"""
        if view.empty:
            return TextResult()

        started = time.perf_counter()
        base = self.prepare(view)
        best: Optional[TextResult] = None
        best_image = None

        for candidate in self.candidates:
            image = render_candidate(base, candidate, theme)
            if image is None:
                continue
            text, confidence = self._recognize(image)
            score = score_text(text, confidence, self.settings.confidence_weight)
            if best is None or score > best.score:
                best = TextResult(text, confidence, score, candidate.name)
                best_image = image
            if (best.confidence >= self.settings.early_exit_confidence
                    and sum(c.isalnum() for c in best.text) >= self.settings.early_exit_length):
                break

        logger.debug(
            "OCR %r via %s (score %.2f, %.1f ms)",
            best.text, best.strategy, best.score, (time.perf_counter() - started) * 1000,
        )
        if self.settings.debug_dump_dir and best_image is not None:
            self._dump(best, best_image)
        return best

    def extract_text(self, view: View, theme: Theme) -> str:
        return self.extract(view, theme).text

    def _dump(self, result: TextResult, image: np.ndarray):
        directory = Path(self.settings.debug_dump_dir)
        directory.mkdir(parents=True, exist_ok=True)
        name = ''.join(c for c in result.text if c.isalnum())[:40] or 'empty'
        PixelBuffer(image).save_png(directory / f"ocr_{name}_{result.strategy}.png")
