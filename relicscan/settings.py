"""
Tunable thresholds for the detection pipeline
"""
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DetectionSettings:
    """
    Detection thresholds and limits

    The relative ordering rules in the pipeline matter more than these
    numbers; the defaults are deliberately conservative.
    """
    # In-game UI scale (1.0 = 100%)
    ui_scale: float = 1.0

    # Rarity icons: RMS luma distance (0-1) below which a position counts as a hit
    icon_accept: float = 0.12
    # Looser acceptance used by the full-strip fallback scan
    scan_accept: float = 0.16

    # Selection: reject the best slot above this deviation (None = always pick best)
    selection_max_deviation: Optional[float] = None

    # Text extraction
    ocr_min_short_edge: int = 90
    ocr_theme_thresholds: tuple = (8.0, 27.0, 64.0)
    early_exit_confidence: float = 0.85
    early_exit_length: int = 4
    confidence_weight: float = 2.0

    # Tracker
    timer_min_seconds: int = 3
    selection_pause_seconds: float = 15.0

    # Write the chosen OCR candidate of every region here ('' = off)
    debug_dump_dir: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["ocr_theme_thresholds"] = list(self.ocr_theme_thresholds)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectionSettings':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "ocr_theme_thresholds" in values:
            values["ocr_theme_thresholds"] = tuple(values["ocr_theme_thresholds"])
        return cls(**values)
