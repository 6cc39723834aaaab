"""Config read/write routes."""
from __future__ import annotations

from pathlib import Path

from litestar import get, post

from s2m.config import Config, clamp_scene_count
from webui.backend.models import ConfigPayload


@get("/api/config")
async def get_config() -> ConfigPayload:
    cfg = Config.load()
    return ConfigPayload(
        # Mask the secret key, show only first/last 4 chars
        gemini_api_key=_mask(cfg.gemini_api_key),
        output_dir=str(cfg.output_dir),
        text_model=cfg.text_model,
        image_model=cfg.image_model,
        scene_count=cfg.scene_count,
        aspect_ratio=cfg.aspect_ratio,
    )


@post("/api/config", status_code=200)
async def save_config(data: ConfigPayload) -> dict:
    cfg = Config.load()
    # Only update the secret if the user sent a non-masked value
    if data.gemini_api_key and "…" not in data.gemini_api_key:
        cfg.gemini_api_key = data.gemini_api_key
    cfg.output_dir = Path(data.output_dir)
    cfg.text_model = data.text_model
    cfg.image_model = data.image_model
    cfg.scene_count = clamp_scene_count(data.scene_count)
    cfg.aspect_ratio = data.aspect_ratio
    cfg.save()
    return {"ok": True}


def _mask(value: str) -> str:
    if not value:
        return ""
    return value[:4] + "…" + value[-4:] if len(value) > 8 else "…"
