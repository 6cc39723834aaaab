"""Gemini image generation, plus Pillow placeholders for test mode."""
from __future__ import annotations

import base64
import io
import logging

from google import genai
from google.genai import types
from PIL import Image, ImageDraw, ImageFont

from .config import IMAGE_STYLE_SUFFIX, PLACEHOLDER_LONG_EDGE, Config
from .errors import AuthOrQuotaError, NoImageReturned
from .state import AspectRatio

log = logging.getLogger(__name__)


def to_data_uri(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def extract_inline_image(response) -> str:
    """Return the first inline image of any candidate as a data URI."""
    for candidate in response.candidates or []:
        content = candidate.content
        if content is None:
            continue
        for part in content.parts or []:
            inline = part.inline_data
            if inline is not None and inline.data:
                return to_data_uri(inline.data, inline.mime_type or "image/png")
    raise NoImageReturned("Failed to generate image. Please try again.")


async def generate_image(prompt: str, aspect_ratio: AspectRatio, config: Config) -> str:
    """Render one image for ``prompt`` at ``aspect_ratio``; returns a data URI."""
    if not config.gemini_api_key:
        raise AuthOrQuotaError("GEMINI_API_KEY is not set.")
    client = genai.Client(api_key=config.gemini_api_key)
    ratio = AspectRatio.parse(aspect_ratio)

    log.info("Generating image with %s at %s: %s", config.image_model, ratio.value, prompt[:80])
    response = await client.aio.models.generate_content(
        model=config.image_model,
        contents=prompt + IMAGE_STYLE_SUFFIX,
        config=types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=ratio.value),
        ),
    )
    return extract_inline_image(response)


def placeholder_size(aspect_ratio: AspectRatio, long_edge: int = PLACEHOLDER_LONG_EDGE) -> tuple[int, int]:
    w, h = (int(x) for x in AspectRatio.parse(aspect_ratio).value.split(":"))
    if w >= h:
        return long_edge, round(long_edge * h / w)
    return round(long_edge * w / h), long_edge


def generate_placeholder_image(prompt: str, aspect_ratio: AspectRatio) -> str:
    """Generate a simple placeholder image (no API needed). Used for testing."""
    width, height = placeholder_size(aspect_ratio)
    img = Image.new("RGB", (width, height), color=(30, 30, 50))
    draw = ImageDraw.Draw(img)

    try:
        font = ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", 28)
    except OSError:
        font = ImageFont.load_default()

    # Simple word wrap
    words = prompt.split()
    lines: list[str] = []
    current = ""
    for w in words:
        test = f"{current} {w}".strip()
        bbox = draw.textbbox((0, 0), test, font=font)
        if bbox[2] > width - 80 and current:
            lines.append(current)
            current = w
        else:
            current = test
    if current:
        lines.append(current)

    y = height // 2 - len(lines) * 20
    for line in lines:
        bbox = draw.textbbox((0, 0), line, font=font)
        x = (width - bbox[2]) // 2
        draw.text((x + 2, y + 2), line, fill=(0, 0, 0), font=font)
        draw.text((x, y), line, fill=(200, 200, 255), font=font)
        y += 40

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return to_data_uri(buf.getvalue())
