"""Clipboard text and downloadable files for a storyboard."""
from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path

from .state import AspectRatio, SessionState

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


def format_all_prompts(state: SessionState) -> str:
    """Every scene prompt followed by the thumbnail prompt, ready to paste."""
    scenes = "\n\n".join(f'Scene {s.index}:\n"{s.prompt}"' for s in state.scenes)
    return f'🖼️ IMAGE PROMPTS:\n{scenes}\n\n🎬 THUMBNAIL PROMPT:\n"{state.thumbnail_prompt}"'


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into ``(mime_type, raw_bytes)``."""
    m = _DATA_URI_RE.match(uri or "")
    if not m or not m.group("b64"):
        raise ValueError("Not a base64 data URI")
    try:
        data = base64.b64decode(m.group("data"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Malformed base64 payload: {e}") from e
    return m.group("mime") or "application/octet-stream", data


def _extension(uri: str | None) -> str:
    m = _DATA_URI_RE.match(uri or "")
    mime = m.group("mime") if m else None
    return _EXTENSIONS.get(mime or "", "png")


def _ratio_slug(aspect_ratio: AspectRatio | str | None) -> str:
    if aspect_ratio is None:
        return "image"
    return AspectRatio.parse(aspect_ratio).value.replace(":", "x")


def scene_filename(index: int, aspect_ratio: AspectRatio | str | None, image_url: str | None = None) -> str:
    return f"s2m-scene-{index:02d}-{_ratio_slug(aspect_ratio)}.{_extension(image_url)}"


def thumbnail_filename(aspect_ratio: AspectRatio | str | None, image_url: str | None = None) -> str:
    return f"s2m-thumbnail-{_ratio_slug(aspect_ratio)}.{_extension(image_url)}"


def save_data_uri(uri: str, directory: Path, filename: str) -> Path:
    _, data = decode_data_uri(uri)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_bytes(data)
    return path
