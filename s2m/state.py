"""Session state: immutable snapshots, the events that change them, and the store.

Every change goes through ``reduce(state, event)``, which returns a new
``SessionState`` and never mutates the old one. Scene updates are keyed by
scene id, so completions arriving in any order only touch their own scene.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

from .config import DEFAULT_SCENE_COUNT, clamp_scene_count

log = logging.getLogger(__name__)


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    PORTRAIT_3_4 = "3:4"
    LANDSCAPE_4_3 = "4:3"

    @classmethod
    def parse(cls, value: "AspectRatio | str") -> "AspectRatio":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValueError(f"Unsupported aspect ratio {value!r} (expected one of {allowed})") from None


def new_scene_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class Scene:
    id: str
    index: int                              # 1-based display position
    prompt: str
    image_url: str | None = None            # data URI, set once
    is_generating_image: bool = False
    aspect_ratio: AspectRatio | None = None  # ratio the image was rendered at

    @property
    def status(self) -> str:
        if self.image_url:
            return "ready"
        if self.is_generating_image:
            return "generating"
        return "pending"


@dataclass(frozen=True)
class SessionState:
    story: str = ""
    scene_count: int = DEFAULT_SCENE_COUNT
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    scenes: tuple[Scene, ...] = ()
    thumbnail_prompt: str = ""
    thumbnail_url: str | None = None
    thumbnail_aspect_ratio: AspectRatio | None = None
    is_generating_prompts: bool = False
    is_generating_thumbnail: bool = False
    error: str | None = None
    has_valid_key: bool = True

    def find_scene(self, scene_id: str) -> Scene | None:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoryChanged:
    story: str


@dataclass(frozen=True)
class SceneCountChanged:
    count: int


@dataclass(frozen=True)
class AspectRatioChanged:
    aspect_ratio: AspectRatio


@dataclass(frozen=True)
class ValidationFailed:
    message: str


@dataclass(frozen=True)
class PlanRequested:
    pass


@dataclass(frozen=True)
class PlanSucceeded:
    scenes: tuple[Scene, ...]
    thumbnail_prompt: str
    append: bool = False


@dataclass(frozen=True)
class PlanFailed:
    message: str
    key_invalid: bool = False


@dataclass(frozen=True)
class SceneImageRequested:
    scene_id: str


@dataclass(frozen=True)
class SceneImageSucceeded:
    scene_id: str
    image_url: str
    aspect_ratio: AspectRatio


@dataclass(frozen=True)
class SceneImageFailed:
    scene_id: str
    key_invalid: bool = False


@dataclass(frozen=True)
class ThumbnailImageRequested:
    pass


@dataclass(frozen=True)
class ThumbnailImageSucceeded:
    prompt: str
    image_url: str
    aspect_ratio: AspectRatio


@dataclass(frozen=True)
class ThumbnailImageFailed:
    key_invalid: bool = False


@dataclass(frozen=True)
class KeySelected:
    pass


Event = (
    StoryChanged | SceneCountChanged | AspectRatioChanged | ValidationFailed
    | PlanRequested | PlanSucceeded | PlanFailed
    | SceneImageRequested | SceneImageSucceeded | SceneImageFailed
    | ThumbnailImageRequested | ThumbnailImageSucceeded | ThumbnailImageFailed
    | KeySelected
)


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _update_scene(state: SessionState, scene_id: str, **changes) -> SessionState:
    if state.find_scene(scene_id) is None:
        return state
    scenes = tuple(
        replace(s, **changes) if s.id == scene_id else s
        for s in state.scenes
    )
    return replace(state, scenes=scenes)


def reduce(state: SessionState, event: Event) -> SessionState:
    """Return the snapshot that follows ``state`` once ``event`` is applied."""
    if isinstance(event, StoryChanged):
        return replace(state, story=event.story)

    if isinstance(event, SceneCountChanged):
        return replace(state, scene_count=clamp_scene_count(event.count))

    if isinstance(event, AspectRatioChanged):
        return replace(state, aspect_ratio=event.aspect_ratio)

    if isinstance(event, ValidationFailed):
        return replace(state, error=event.message)

    if isinstance(event, PlanRequested):
        return replace(state, is_generating_prompts=True, error=None)

    if isinstance(event, PlanSucceeded):
        scenes = state.scenes + event.scenes if event.append else event.scenes
        changes: dict = {
            "scenes": scenes,
            "thumbnail_prompt": event.thumbnail_prompt,
            "is_generating_prompts": False,
        }
        # A poster rendered for an older thumbnail prompt no longer matches it
        if event.thumbnail_prompt != state.thumbnail_prompt:
            changes["thumbnail_url"] = None
            changes["thumbnail_aspect_ratio"] = None
        return replace(state, **changes)

    if isinstance(event, PlanFailed):
        return replace(
            state,
            is_generating_prompts=False,
            error=event.message,
            has_valid_key=state.has_valid_key and not event.key_invalid,
        )

    if isinstance(event, SceneImageRequested):
        scene = state.find_scene(event.scene_id)
        if scene is None or scene.image_url or scene.is_generating_image:
            return state
        return _update_scene(state, event.scene_id, is_generating_image=True)

    if isinstance(event, SceneImageSucceeded):
        scene = state.find_scene(event.scene_id)
        if scene is None:
            return state
        if scene.image_url:
            return _update_scene(state, event.scene_id, is_generating_image=False)
        return _update_scene(
            state,
            event.scene_id,
            image_url=event.image_url,
            aspect_ratio=event.aspect_ratio,
            is_generating_image=False,
        )

    if isinstance(event, SceneImageFailed):
        state = _update_scene(state, event.scene_id, is_generating_image=False)
        if event.key_invalid:
            state = replace(state, has_valid_key=False)
        return state

    if isinstance(event, ThumbnailImageRequested):
        if not state.thumbnail_prompt or state.thumbnail_url or state.is_generating_thumbnail:
            return state
        return replace(state, is_generating_thumbnail=True)

    if isinstance(event, ThumbnailImageSucceeded):
        if event.prompt != state.thumbnail_prompt or state.thumbnail_url:
            return replace(state, is_generating_thumbnail=False)
        return replace(
            state,
            thumbnail_url=event.image_url,
            thumbnail_aspect_ratio=event.aspect_ratio,
            is_generating_thumbnail=False,
        )

    if isinstance(event, ThumbnailImageFailed):
        return replace(
            state,
            is_generating_thumbnail=False,
            has_valid_key=state.has_valid_key and not event.key_invalid,
        )

    if isinstance(event, KeySelected):
        return replace(state, has_valid_key=True)

    raise TypeError(f"Unknown event: {event!r}")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

Listener = Callable[[SessionState], None]


class SessionStore:
    """Holds the current snapshot and fans changes out to subscribers."""

    def __init__(self, initial: SessionState | None = None) -> None:
        self._state = initial or SessionState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, event: Event) -> SessionState:
        new_state = reduce(self._state, event)
        if new_state is self._state:
            return new_state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                log.exception("State listener %r failed", listener)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
