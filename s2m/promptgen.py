"""Scene-prompt planning with Gemini structured output."""
from __future__ import annotations

import logging
import re

from google import genai
from google.genai import types
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .config import Config
from .errors import AuthOrQuotaError, EmptyResponse, ParseError

log = logging.getLogger(__name__)


class StoryResponse(BaseModel):
    scenes: list[str] = Field(description="List of cinematic image prompts")
    thumbnail: str = Field(description="A single cinematic thumbnail prompt")


_SYSTEM_TEMPLATE = """You are a professional AI Prompt Generator for "S2M AI – Story-to-Media Generator".

RESPONSIBILITIES:
1. Understand the story in its original language.
2. Do NOT rewrite, summarize, or modify the story.
3. Analyze story structure and flow.
4. Generate exactly {scene_count} image scenes based on the story.
{continuation}
5. Generate all IMAGE PROMPTS and the THUMBNAIL PROMPT in ENGLISH ONLY.

STYLE REQUIREMENTS:
- Cinematic composition, Ultra-realistic, 8K, high detail, professional photography.
- Focus on lighting, shadows, camera angle, and depth of field.
- Evoke strong mood and emotion accurate to the story.

OUTPUT FORMAT:
You must return a JSON object with exactly two keys:
"scenes": an array of strings, each being a cinematic image prompt.
"thumbnail": a single string, a powerful summary cinematic prompt."""

_CONTINUATION_TEMPLATE = (
    "Note: You are adding {scene_count} MORE scenes to an existing set of "
    "{existing_count} scenes. Continue from where the previous scenes likely "
    "left off or deepen the existing visual narrative."
)


def build_system_instruction(scene_count: int, existing_count: int = 0) -> str:
    continuation = ""
    if existing_count > 0:
        continuation = _CONTINUATION_TEMPLATE.format(
            scene_count=scene_count, existing_count=existing_count
        )
    return _SYSTEM_TEMPLATE.format(scene_count=scene_count, continuation=continuation)


def parse_story_response(text: str | None, scene_count: int) -> StoryResponse:
    """Validate the model's JSON text and trim it to ``scene_count`` prompts.

    All-or-nothing: a payload that is short, blank or off-schema is rejected
    whole rather than salvaged.
    """
    if not text or not text.strip():
        raise EmptyResponse("No response from AI")
    try:
        result = StoryResponse.model_validate_json(text)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid JSON response from AI: {e}") from e

    scenes = [s.strip() for s in result.scenes]
    if len(scenes) < scene_count:
        raise ParseError(f"Expected {scene_count} scene prompts, got {len(scenes)}")
    scenes = scenes[:scene_count]
    if any(not s for s in scenes):
        raise ParseError("Response contained a blank scene prompt")
    if not result.thumbnail.strip():
        raise ParseError("Response contained a blank thumbnail prompt")
    return StoryResponse(scenes=scenes, thumbnail=result.thumbnail.strip())


async def generate_prompts(
    story: str,
    scene_count: int,
    existing_count: int,
    config: Config,
) -> StoryResponse:
    """Ask the text model for ``scene_count`` scene prompts plus a thumbnail prompt.

    ``existing_count > 0`` turns the request into a continuation of an
    existing storyboard. A fresh client is built per call; there is no retry.
    """
    if not config.gemini_api_key:
        raise AuthOrQuotaError("GEMINI_API_KEY is not set.")
    client = genai.Client(api_key=config.gemini_api_key)

    log.info(
        "Generating %d scene prompts with %s (existing=%d)",
        scene_count, config.text_model, existing_count,
    )
    response = await client.aio.models.generate_content(
        model=config.text_model,
        contents=f"Story: {story}\nGenerate {scene_count} scenes.",
        config=types.GenerateContentConfig(
            system_instruction=build_system_instruction(scene_count, existing_count),
            response_mime_type="application/json",
            response_schema=StoryResponse,
        ),
    )
    return parse_story_response(response.text, scene_count)


# ---------------------------------------------------------------------------
# Test mode: template-based plan, no network
# ---------------------------------------------------------------------------

_PLACEHOLDER_SHOTS = [
    "Establishing wide shot of {topic}, golden hour, volumetric light, anamorphic lens",
    "Intimate close-up capturing the emotion of {topic}, shallow depth of field, soft rim light",
    "Low-angle dramatic shot of {topic}, storm clouds, high contrast shadows",
    "Over-the-shoulder view deep inside {topic}, moody practical lighting, 35mm film grain",
    "Aerial drone perspective over {topic}, misty atmosphere, vast scale",
    "Silhouette of a lone figure within {topic} at dusk, backlit, long shadows",
    "Macro detail shot revealing texture in {topic}, crisp focus, bokeh background",
    "Night scene of {topic} lit by neon and moonlight, reflections on wet ground",
]


def _extract_topic(story: str, max_words: int = 12) -> str:
    """First sentence of the story, shortened for use inside a prompt."""
    first = re.split(r"(?<=[.!?。！？])\s*", story.strip(), maxsplit=1)[0]
    words = first.split()
    topic = " ".join(words[:max_words]).rstrip(".!?。！？,;:")
    return topic or story.strip()


def placeholder_prompts(story: str, scene_count: int, existing_count: int = 0) -> StoryResponse:
    """Deterministic plan built from templates. Used in test mode."""
    topic = _extract_topic(story)
    scenes = [
        _PLACEHOLDER_SHOTS[(existing_count + i) % len(_PLACEHOLDER_SHOTS)].format(topic=topic)
        + f", scene {existing_count + i + 1}"
        for i in range(scene_count)
    ]
    thumbnail = f"Epic cinematic poster of {topic}, dramatic key art, ultra-realistic, 8k"
    return StoryResponse(scenes=scenes, thumbnail=thumbnail)
