"""
Item value lookup
Maps OCR'd reward names onto canonical item names and their market values.
The dataset itself is supplied by the caller; nothing is fetched here.
"""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

from rapidfuzz import fuzz, process


@dataclass(frozen=True)
class ItemValue:
    """Market information for one item"""
    platinum: float = 0.0
    ducats: int = 0
    vaulted: bool = False


# name -> (canonical name, value) or None when nothing is close enough
ItemLookup = Callable[[str], Optional[Tuple[str, ItemValue]]]


class ItemDatabase:
    """
    Fuzzy name -> ItemValue lookup

    Args:
        items: Canonical item name -> value
        score_cutoff: Minimum WRatio (0-100) for a fuzzy match
    """

    def __init__(self, items: Dict[str, ItemValue], score_cutoff: float = 80.0):
        self.items = dict(items)
        self.score_cutoff = score_cutoff
        self._lower = {name.lower(): name for name in self.items}

    def __len__(self) -> int:
        return len(self.items)

    def __call__(self, name: str) -> Optional[Tuple[str, ItemValue]]:
        return self.find(name)

    def find(self, name: str) -> Optional[Tuple[str, ItemValue]]:
        """Canonical name and value for an OCR'd name"""
        name = name.strip()
        if not name or not self.items:
            return None

        exact = self._lower.get(name.lower())
        if exact is not None:
            return exact, self.items[exact]

        match = process.extractOne(
            name,
            list(self.items.keys()),
            scorer=fuzz.WRatio,
            score_cutoff=self.score_cutoff,
        )
        if match is None:
            return None
        canonical = match[0]
        return canonical, self.items[canonical]

    @classmethod
    def from_dict(cls, data: Dict[str, Dict], score_cutoff: float = 80.0) -> 'ItemDatabase':
        items = {
            name: ItemValue(
                platinum=float(entry.get("platinum", 0.0)),
                ducats=int(entry.get("ducats", 0)),
                vaulted=bool(entry.get("vaulted", False)),
            )
            for name, entry in data.items()
        }
        return cls(items, score_cutoff)

    @classmethod
    def load(cls, path: Union[str, Path], score_cutoff: float = 80.0) -> 'ItemDatabase':
        """Load from a JSON object of {name: {platinum, ducats, vaulted}}"""
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f), score_cutoff)
