"""Litestar ASGI application for the S2M Web API.

Run with:  uvicorn webui.backend.app:app --port 8000
"""
from __future__ import annotations

from litestar import Litestar
from litestar.config.cors import CORSConfig
from litestar.logging import LoggingConfig

from webui.backend.routes.config import get_config, save_config
from webui.backend.routes.images import (
    download_scene,
    download_thumbnail,
    generate_scene_image,
    generate_thumbnail_image,
)
from webui.backend.routes.sessions import (
    all_prompts,
    create_session,
    drop_session,
    generate_plan,
    get_session,
    select_key,
    update_settings,
)
from webui.backend.routes.stream import stream_session

app = Litestar(
    route_handlers=[
        get_config,
        save_config,
        create_session,
        get_session,
        drop_session,
        update_settings,
        generate_plan,
        all_prompts,
        select_key,
        generate_scene_image,
        generate_thumbnail_image,
        download_scene,
        download_thumbnail,
        stream_session,
    ],
    cors_config=CORSConfig(
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    ),
    logging_config=LoggingConfig(
        loggers={
            "s2m": {"level": "INFO", "handlers": ["queue_listener"]},
            "webui": {"level": "INFO", "handlers": ["queue_listener"]},
        }
    ),
)
