import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path.home() / ".uniswap" / "preferences.json"

THEME_KEY = "uniswap-theme"
THEMES = ("night", "day")


class Preferences:
    """Small key-value store scoped to one file; every change is written through."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_PATH
        self._values = {}

    def load(self):
        if not self.path.exists():
            self._values = {}
            return
        try:
            self._values = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable preferences at %s: %s", self.path, e)
            self._values = {}

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any):
        self._values[key] = value
        self.save()

    def remove(self, key: str):
        if key in self._values:
            del self._values[key]
            self.save()

    @property
    def theme(self) -> str:
        return "day" if self.get(THEME_KEY) == "day" else "night"

    @theme.setter
    def theme(self, mode: str):
        if mode not in THEMES:
            raise ValueError(f"Unknown theme: {mode}")
        self.set(THEME_KEY, mode)
