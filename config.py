"""
Configuration management for the relic reward scanner
"""
import os
import json
from pathlib import Path
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

from relicscan.settings import DetectionSettings
from relicscan.theme import Theme


@dataclass
class Config:
    """Application configuration"""
    # Recognition engine settings
    ocr_engine: str = ""  # '' = first available, 'paddle' or 'tesseract'
    ocr_lang: str = "en"

    # Paths
    icons_dir: str = ""  # '' = bundled assets/icons
    items_path: str = ""  # JSON item database, '' = no value lookup
    log_path: str = ""

    # Sampled UI theme ({"primary": [r, g, b], "secondary": [r, g, b]})
    theme: Dict[str, Any] = field(default_factory=lambda: Theme.WHITE.to_dict())

    # Detection thresholds (see DetectionSettings)
    detection: Dict[str, Any] = field(default_factory=lambda: DetectionSettings().to_dict())

    # Display settings
    valued_forma: bool = False
    max_capture_height: int = 0  # downscale larger captures before detection, 0 = off

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the configuration file path"""
        # Use AppData on Windows, otherwise use home directory
        if os.name == 'nt':
            app_data = os.environ.get('APPDATA', '')
            config_dir = Path(app_data) / 'RelicScan'
        else:
            config_dir = Path.home() / '.relicscan'

        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir / 'config.json'

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'Config':
        """Load configuration from file, falling back to defaults"""
        config_path = Path(path) if path else cls.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                return cls(**data)
            except (json.JSONDecodeError, TypeError):
                pass

        return cls()

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to file"""
        config_path = Path(path) if path else self.get_config_path()

        with open(config_path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @property
    def settings(self) -> DetectionSettings:
        return DetectionSettings.from_dict(self.detection)

    def get_theme(self) -> Theme:
        return Theme.from_dict(self.theme)

    def validate(self) -> tuple[bool, list[str]]:
        """Validate configuration, returns (is_valid, error_messages)"""
        errors = []

        if self.ocr_engine not in ("", "paddle", "tesseract"):
            errors.append(f"Unknown OCR engine: {self.ocr_engine}")

        if self.max_capture_height < 0:
            errors.append("Max capture height must be non-negative")

        try:
            settings = self.settings
        except (TypeError, ValueError) as e:
            errors.append(f"Invalid detection settings: {e}")
        else:
            if settings.ui_scale <= 0:
                errors.append("UI scale must be positive")
            if not 0 <= settings.icon_accept <= 1:
                errors.append("Icon acceptance must be between 0 and 1")
            if settings.scan_accept < settings.icon_accept:
                errors.append("Scan acceptance must not be stricter than icon acceptance")

        if self.items_path and not Path(self.items_path).exists():
            errors.append(f"Item database not found: {self.items_path}")

        return len(errors) == 0, errors

