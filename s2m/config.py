"""Settings and API key management."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".s2m"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Gemini models
TEXT_MODEL = "gemini-3-flash-preview"
IMAGE_MODEL = "gemini-2.5-flash-image"

# Appended to every image prompt so renders stay photographic regardless of wording
IMAGE_STYLE_SUFFIX = ", cinematic high-end photography, 8k resolution, ultra detailed"

# Scene count bounds enforced by the form
MIN_SCENES = 1
MAX_SCENES = 15
DEFAULT_SCENE_COUNT = 3

DEFAULT_ASPECT_RATIO = "16:9"

# Placeholder renders (test mode), long edge in pixels
PLACEHOLDER_LONG_EDGE = 1024


@dataclass
class Config:
    gemini_api_key: str = ""
    output_dir: Path = field(default_factory=lambda: Path("output"))
    text_model: str = TEXT_MODEL
    image_model: str = IMAGE_MODEL
    scene_count: int = DEFAULT_SCENE_COUNT
    aspect_ratio: str = DEFAULT_ASPECT_RATIO

    @classmethod
    def load(cls) -> "Config":
        """Load config from env vars then config file."""
        cfg = cls()

        # Env var takes priority
        api_key = os.environ.get("GEMINI_API_KEY", "") or os.environ.get("GOOGLE_API_KEY", "")

        # Fall back to config file
        if CONFIG_FILE.exists():
            try:
                data = json.loads(CONFIG_FILE.read_text(encoding="utf-8-sig"))
                if not api_key:
                    api_key = data.get("gemini_api_key", "")
                if out := data.get("output_dir"):
                    cfg.output_dir = Path(out)
                if tm := data.get("text_model"):
                    cfg.text_model = tm
                if im := data.get("image_model"):
                    cfg.image_model = im
                if data.get("scene_count") is not None:
                    cfg.scene_count = clamp_scene_count(int(data["scene_count"]))
                if ar := data.get("aspect_ratio"):
                    cfg.aspect_ratio = _valid_aspect_ratio(ar)
            except (json.JSONDecodeError, OSError, ValueError, TypeError):
                pass

        cfg.gemini_api_key = api_key
        return cfg

    def save(self) -> None:
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        data = {
            "gemini_api_key": self.gemini_api_key,
            "output_dir": str(self.output_dir),
            "text_model": self.text_model,
            "image_model": self.image_model,
            "scene_count": self.scene_count,
            "aspect_ratio": self.aspect_ratio,
        }
        CONFIG_FILE.write_text(json.dumps(data, indent=2))


def clamp_scene_count(value: int) -> int:
    return max(MIN_SCENES, min(MAX_SCENES, value))


def _valid_aspect_ratio(value: object) -> str:
    # state imports this module, so the enum is looked up lazily
    from .state import AspectRatio

    try:
        return AspectRatio.parse(str(value)).value
    except ValueError:
        log.warning("Ignoring unsupported aspect ratio %r in %s", value, CONFIG_FILE)
        return DEFAULT_ASPECT_RATIO
