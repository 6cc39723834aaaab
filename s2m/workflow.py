"""Generation workflow: turns user actions into client calls and state events."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .config import Config
from .errors import (
    AuthOrQuotaError,
    ValidationError,
    classify_error,
    user_message,
)
from .imagegen import generate_image, generate_placeholder_image
from .keyhook import AlwaysAvailableKey, KeySelector
from .promptgen import StoryResponse, generate_prompts, placeholder_prompts
from .state import (
    AspectRatio,
    AspectRatioChanged,
    KeySelected,
    PlanFailed,
    PlanRequested,
    PlanSucceeded,
    Scene,
    SceneCountChanged,
    SceneImageFailed,
    SceneImageRequested,
    SceneImageSucceeded,
    SessionState,
    SessionStore,
    StoryChanged,
    ThumbnailImageFailed,
    ThumbnailImageRequested,
    ThumbnailImageSucceeded,
    ValidationFailed,
    new_scene_id,
)

log = logging.getLogger(__name__)

PromptFn = Callable[[str, int, int, Config], Awaitable[StoryResponse]]
ImageFn = Callable[[str, AspectRatio, Config], Awaitable[str]]


async def _placeholder_prompt_fn(
    story: str, scene_count: int, existing_count: int, config: Config
) -> StoryResponse:
    return placeholder_prompts(story, scene_count, existing_count)


async def _placeholder_image_fn(prompt: str, aspect_ratio: AspectRatio, config: Config) -> str:
    return generate_placeholder_image(prompt, aspect_ratio)


def initial_state(config: Config, key_selector: KeySelector | None = None) -> SessionState:
    """Fresh session snapshot seeded from config defaults."""
    selector = key_selector or AlwaysAvailableKey()
    try:
        ratio = AspectRatio.parse(config.aspect_ratio)
    except ValueError:
        log.warning("Ignoring configured aspect ratio %r", config.aspect_ratio)
        ratio = AspectRatio.LANDSCAPE
    return SessionState(
        scene_count=config.scene_count,
        aspect_ratio=ratio,
        has_valid_key=selector.has_key(),
    )


class StoryboardController:
    """The only component that talks to both clients and writes generation state.

    Every action runs to completion on the asyncio loop; several image actions
    may be awaited concurrently, each keyed by its scene id.
    """

    def __init__(
        self,
        store: SessionStore,
        config: Config,
        key_selector: KeySelector | None = None,
        use_placeholders: bool = False,
        prompt_fn: PromptFn | None = None,
        image_fn: ImageFn | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.key_selector = key_selector or AlwaysAvailableKey()
        self.use_placeholders = use_placeholders
        self._prompt_fn = prompt_fn or (_placeholder_prompt_fn if use_placeholders else generate_prompts)
        self._image_fn = image_fn or (_placeholder_image_fn if use_placeholders else generate_image)

    @property
    def state(self) -> SessionState:
        return self.store.state

    # ------------------------------------------------------------------
    # Form input
    # ------------------------------------------------------------------

    def set_story(self, story: str) -> None:
        self.store.dispatch(StoryChanged(story))

    def set_scene_count(self, count: int) -> None:
        self.store.dispatch(SceneCountChanged(int(count)))

    def set_aspect_ratio(self, aspect_ratio: AspectRatio | str) -> None:
        """Affects later image requests only; existing images are kept."""
        self.store.dispatch(AspectRatioChanged(AspectRatio.parse(aspect_ratio)))

    def select_key(self) -> None:
        """Open the host's key selection; it is assumed to succeed."""
        self.key_selector.request_key()
        self.key_selected()

    def key_selected(self) -> None:
        self.store.dispatch(KeySelected())

    # ------------------------------------------------------------------
    # Plan generation
    # ------------------------------------------------------------------

    async def generate_plan(self, add_more: bool = False) -> SessionState:
        """Fresh plan (replaces every scene) or "add more" (appends)."""
        state = self.state
        if not state.story.strip():
            self.store.dispatch(ValidationFailed(user_message(ValidationError("story is blank"))))
            return self.state
        if state.is_generating_prompts:
            log.info("Plan request ignored: one is already in flight")
            return state
        if not self.use_placeholders and (not state.has_valid_key or not self.key_selector.has_key()):
            self.select_key()

        existing_count = len(state.scenes) if add_more else 0
        scene_count = state.scene_count
        self.store.dispatch(PlanRequested())

        try:
            response = await self._prompt_fn(state.story, scene_count, existing_count, self.config)
        except Exception as exc:
            err = classify_error(exc)
            log.error("Plan generation failed: %s", exc)
            self.store.dispatch(PlanFailed(
                message=user_message(err),
                key_invalid=isinstance(err, AuthOrQuotaError),
            ))
            return self.state

        scenes = tuple(
            Scene(id=new_scene_id(), index=existing_count + i + 1, prompt=prompt)
            for i, prompt in enumerate(response.scenes[:scene_count])
        )
        log.info("Plan ready: %d new scenes (add_more=%s)", len(scenes), add_more)
        self.store.dispatch(PlanSucceeded(
            scenes=scenes,
            thumbnail_prompt=response.thumbnail,
            append=add_more,
        ))
        return self.state

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def generate_scene_image(self, scene_id: str) -> Scene | None:
        """Render one scene. No-op when unknown, already rendered or in flight."""
        scene = self.state.find_scene(scene_id)
        if scene is None or scene.image_url or scene.is_generating_image:
            return scene

        aspect_ratio = self.state.aspect_ratio
        self.store.dispatch(SceneImageRequested(scene_id))
        try:
            image_url = await self._image_fn(scene.prompt, aspect_ratio, self.config)
        except Exception as exc:
            err = classify_error(exc)
            log.warning("Image generation failed for scene %d (%s): %s", scene.index, scene_id, exc)
            self.store.dispatch(SceneImageFailed(
                scene_id, key_invalid=isinstance(err, AuthOrQuotaError)
            ))
        else:
            self.store.dispatch(SceneImageSucceeded(scene_id, image_url, aspect_ratio))
        return self.state.find_scene(scene_id)

    async def generate_thumbnail_image(self) -> SessionState:
        state = self.state
        if not state.thumbnail_prompt or state.thumbnail_url or state.is_generating_thumbnail:
            return state

        prompt = state.thumbnail_prompt
        aspect_ratio = state.aspect_ratio
        self.store.dispatch(ThumbnailImageRequested())
        try:
            image_url = await self._image_fn(prompt, aspect_ratio, self.config)
        except Exception as exc:
            err = classify_error(exc)
            log.warning("Thumbnail generation failed: %s", exc)
            self.store.dispatch(ThumbnailImageFailed(key_invalid=isinstance(err, AuthOrQuotaError)))
        else:
            self.store.dispatch(ThumbnailImageSucceeded(prompt, image_url, aspect_ratio))
        return self.state

    async def generate_all_images(self, include_thumbnail: bool = True) -> SessionState:
        """Start every pending scene (and the thumbnail) concurrently."""
        pending = [s.id for s in self.state.scenes if s.status == "pending"]
        jobs = [self.generate_scene_image(scene_id) for scene_id in pending]
        if include_thumbnail:
            jobs.append(self.generate_thumbnail_image())
        if jobs:
            await asyncio.gather(*jobs)
        return self.state
