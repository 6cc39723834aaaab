"""Scene / thumbnail image generation and download routes."""
from __future__ import annotations

from litestar import Response, get, post
from litestar.exceptions import NotFoundException

from s2m.export import decode_data_uri, scene_filename, thumbnail_filename
from webui.backend.models import SceneView, SessionView
from webui.backend.routes.sessions import _session


@post("/api/sessions/{session_id:str}/scenes/{scene_id:str}/image", status_code=200)
async def generate_scene_image(session_id: str, scene_id: str) -> SceneView:
    """Render one scene. A failed render comes back as ``pending`` with no image."""
    session = _session(session_id)
    if session.store.state.find_scene(scene_id) is None:
        raise NotFoundException(f"Scene {scene_id!r} not found")
    scene = await session.controller.generate_scene_image(scene_id)
    if scene is None:
        # Replaced by a regenerate while rendering
        raise NotFoundException(f"Scene {scene_id!r} not found")
    return SceneView.from_scene(scene)


@post("/api/sessions/{session_id:str}/thumbnail/image", status_code=200)
async def generate_thumbnail_image(session_id: str) -> SessionView:
    session = _session(session_id)
    if not session.store.state.thumbnail_prompt:
        raise NotFoundException("No thumbnail prompt generated yet")
    await session.controller.generate_thumbnail_image()
    return session.view()


def _download(uri: str, filename: str) -> Response[bytes]:
    mime, data = decode_data_uri(uri)
    return Response(
        content=data,
        media_type=mime,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@get("/api/sessions/{session_id:str}/scenes/{scene_id:str}/download")
async def download_scene(session_id: str, scene_id: str) -> Response[bytes]:
    scene = _session(session_id).store.state.find_scene(scene_id)
    if scene is None or not scene.image_url:
        raise NotFoundException(f"No image for scene {scene_id!r}")
    return _download(scene.image_url, scene_filename(scene.index, scene.aspect_ratio, scene.image_url))


@get("/api/sessions/{session_id:str}/thumbnail/download")
async def download_thumbnail(session_id: str) -> Response[bytes]:
    state = _session(session_id).store.state
    if not state.thumbnail_url:
        raise NotFoundException("No thumbnail image yet")
    return _download(
        state.thumbnail_url,
        thumbnail_filename(state.thumbnail_aspect_ratio, state.thumbnail_url),
    )
