import asyncio
import base64
from types import SimpleNamespace

import pytest

from s2m import imagegen
from s2m.config import IMAGE_STYLE_SUFFIX, Config
from s2m.errors import AuthOrQuotaError, NoImageReturned
from s2m.export import decode_data_uri
from s2m.imagegen import extract_inline_image, generate_image, generate_placeholder_image, placeholder_size
from s2m.state import AspectRatio


def _part(data=None, mime_type="image/png", text=None):
    inline = SimpleNamespace(data=data, mime_type=mime_type) if data is not None else None
    return SimpleNamespace(inline_data=inline, text=text)


def _response(*candidates):
    return SimpleNamespace(candidates=[
        SimpleNamespace(content=SimpleNamespace(parts=parts) if parts is not None else None)
        for parts in candidates
    ])


def test_extract_first_inline_image_from_any_candidate():
    response = _response(
        None,
        [_part(text="here you go")],
        [_part(data=b"\x89PNG", mime_type="image/jpeg"), _part(data=b"second")],
    )
    uri = extract_inline_image(response)
    assert uri == "data:image/jpeg;base64," + base64.b64encode(b"\x89PNG").decode()


@pytest.mark.parametrize("response", [
    SimpleNamespace(candidates=None),
    _response([_part(text="sorry, no image")]),
    _response([]),
])
def test_extract_raises_without_image(response):
    with pytest.raises(NoImageReturned):
        extract_inline_image(response)


def test_generate_image_appends_style_and_ratio(monkeypatch):
    calls = []

    class FakeModels:
        async def generate_content(self, **kwargs):
            calls.append(kwargs)
            return _response([_part(data=b"img")])

    class FakeClient:
        def __init__(self, api_key=None):
            self.aio = SimpleNamespace(models=FakeModels())

    monkeypatch.setattr(imagegen.genai, "Client", FakeClient)
    config = Config(gemini_api_key="k", image_model="image-model")

    uri = asyncio.run(generate_image("A garden at dawn", AspectRatio.PORTRAIT, config))

    assert uri.startswith("data:image/png;base64,")
    request = calls[0]
    assert request["model"] == "image-model"
    assert request["contents"] == "A garden at dawn" + IMAGE_STYLE_SUFFIX
    assert request["config"].image_config.aspect_ratio == "9:16"


def test_generate_image_without_key_raises_auth_error(monkeypatch):
    def no_client(**kwargs):
        raise AssertionError("client must not be built without a key")

    monkeypatch.setattr(imagegen.genai, "Client", no_client)
    with pytest.raises(AuthOrQuotaError):
        asyncio.run(generate_image("A garden", AspectRatio.SQUARE, Config(gemini_api_key="")))


@pytest.mark.parametrize("ratio,size", [
    (AspectRatio.SQUARE, (1024, 1024)),
    (AspectRatio.LANDSCAPE, (1024, 576)),
    (AspectRatio.PORTRAIT, (576, 1024)),
    (AspectRatio.PORTRAIT_3_4, (768, 1024)),
    (AspectRatio.LANDSCAPE_4_3, (1024, 768)),
])
def test_placeholder_size(ratio, size):
    assert placeholder_size(ratio) == size


def test_placeholder_image_is_png():
    mime, data = decode_data_uri(generate_placeholder_image("a quiet garden " * 20, AspectRatio.SQUARE))
    assert mime == "image/png"
    assert data.startswith(b"\x89PNG")
