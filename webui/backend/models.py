"""Pydantic request/response models for the S2M Web API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from s2m.config import DEFAULT_ASPECT_RATIO, DEFAULT_SCENE_COUNT, IMAGE_MODEL, TEXT_MODEL
from s2m.state import Scene, SessionState

AspectRatioValue = Literal["1:1", "16:9", "9:16", "3:4", "4:3"]


class CreateSessionRequest(BaseModel):
    use_test_mode: bool = False     # placeholder prompts/images, no API calls
    story: str = ""
    scene_count: int | None = None
    aspect_ratio: AspectRatioValue | None = None


class SettingsUpdate(BaseModel):
    story: str | None = None
    scene_count: int | None = None  # clamped to the allowed range
    aspect_ratio: AspectRatioValue | None = None


class PlanRequest(BaseModel):
    add_more: bool = False


class KeyPayload(BaseModel):
    api_key: str = Field(min_length=1)


class SceneView(BaseModel):
    id: str
    index: int
    prompt: str
    status: Literal["pending", "generating", "ready"]
    image_url: str | None = None
    is_generating_image: bool = False
    aspect_ratio: AspectRatioValue | None = None

    @classmethod
    def from_scene(cls, scene: Scene) -> "SceneView":
        return cls(
            id=scene.id,
            index=scene.index,
            prompt=scene.prompt,
            status=scene.status,
            image_url=scene.image_url,
            is_generating_image=scene.is_generating_image,
            aspect_ratio=scene.aspect_ratio.value if scene.aspect_ratio else None,
        )


class SessionView(BaseModel):
    session_id: str
    story: str
    scene_count: int
    aspect_ratio: AspectRatioValue
    scenes: list[SceneView]
    thumbnail_prompt: str
    thumbnail_url: str | None = None
    thumbnail_aspect_ratio: AspectRatioValue | None = None
    is_generating_prompts: bool
    is_generating_thumbnail: bool
    error: str | None = None
    has_valid_key: bool
    needs_key: bool = False
    test_mode: bool = False

    @classmethod
    def from_state(
        cls,
        session_id: str,
        state: SessionState,
        needs_key: bool = False,
        test_mode: bool = False,
    ) -> "SessionView":
        return cls(
            session_id=session_id,
            story=state.story,
            scene_count=state.scene_count,
            aspect_ratio=state.aspect_ratio.value,
            scenes=[SceneView.from_scene(s) for s in state.scenes],
            thumbnail_prompt=state.thumbnail_prompt,
            thumbnail_url=state.thumbnail_url,
            thumbnail_aspect_ratio=(
                state.thumbnail_aspect_ratio.value if state.thumbnail_aspect_ratio else None
            ),
            is_generating_prompts=state.is_generating_prompts,
            is_generating_thumbnail=state.is_generating_thumbnail,
            error=state.error,
            has_valid_key=state.has_valid_key,
            needs_key=needs_key,
            test_mode=test_mode,
        )


class ConfigPayload(BaseModel):
    gemini_api_key: str = ""
    output_dir: str = "output"
    text_model: str = TEXT_MODEL
    image_model: str = IMAGE_MODEL
    scene_count: int = DEFAULT_SCENE_COUNT
    aspect_ratio: AspectRatioValue = DEFAULT_ASPECT_RATIO
