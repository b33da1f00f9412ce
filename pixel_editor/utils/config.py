import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path.home() / ".pixel_editor_config.json"
MAX_RECENT = 5


class AppConfig:
    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path else DEFAULT_PATH
        self._set_defaults()
        self._load()

    def _set_defaults(self):
        self.recent_files: list[str] = []
        self.history_limit: int = 500
        self.canvas_width: int = 64
        self.canvas_height: int = 64
        self.tile_width: int = 8
        self.tile_height: int = 8
        self.draw_grid: bool = True

    def _load(self):
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self.recent_files = [str(p) for p in data.get("recent_files", [])][:MAX_RECENT]
            self.history_limit = max(1, int(data.get("history_limit", self.history_limit)))
            self.canvas_width = int(data.get("canvas_width", self.canvas_width))
            self.canvas_height = int(data.get("canvas_height", self.canvas_height))
            self.tile_width = int(data.get("tile_width", self.tile_width))
            self.tile_height = int(data.get("tile_height", self.tile_height))
            self.draw_grid = bool(data.get("draw_grid", self.draw_grid))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable config %s: %s", self.path, e)
            self._set_defaults()

    def add_recent(self, path: str | Path):
        p = str(Path(path).resolve())
        if p in self.recent_files:
            self.recent_files.remove(p)
        self.recent_files.insert(0, p)
        self.recent_files = self.recent_files[:MAX_RECENT]

    def save(self):
        data = {
            "recent_files": self.recent_files[:MAX_RECENT],
            "history_limit": self.history_limit,
            "canvas_width": self.canvas_width,
            "canvas_height": self.canvas_height,
            "tile_width": self.tile_width,
            "tile_height": self.tile_height,
            "draw_grid": self.draw_grid,
        }
        try:
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save config %s: %s", self.path, e)
