"""Session create / read / settings / plan routes."""
from __future__ import annotations

from litestar import MediaType, delete, get, post
from litestar.exceptions import NotFoundException, ValidationException

from s2m.export import format_all_prompts
from webui.backend.models import CreateSessionRequest, KeyPayload, PlanRequest, SessionView, SettingsUpdate
from webui.backend.session_manager import Session, session_manager


def _session(session_id: str) -> Session:
    session = session_manager.get(session_id)
    if session is None:
        raise NotFoundException(f"Session {session_id!r} not found")
    return session


@post("/api/sessions")
async def create_session(data: CreateSessionRequest) -> SessionView:
    session = session_manager.create(use_placeholders=data.use_test_mode)
    controller = session.controller
    if data.story:
        controller.set_story(data.story)
    if data.scene_count is not None:
        controller.set_scene_count(data.scene_count)
    if data.aspect_ratio:
        controller.set_aspect_ratio(data.aspect_ratio)
    return session.view()


@get("/api/sessions/{session_id:str}")
async def get_session(session_id: str) -> SessionView:
    return _session(session_id).view()


@delete("/api/sessions/{session_id:str}")
async def drop_session(session_id: str) -> None:
    if not session_manager.drop(session_id):
        raise NotFoundException(f"Session {session_id!r} not found")


@post("/api/sessions/{session_id:str}/settings", status_code=200)
async def update_settings(session_id: str, data: SettingsUpdate) -> SessionView:
    session = _session(session_id)
    controller = session.controller
    if data.story is not None:
        controller.set_story(data.story)
    if data.scene_count is not None:
        controller.set_scene_count(data.scene_count)
    if data.aspect_ratio is not None:
        controller.set_aspect_ratio(data.aspect_ratio)
    return session.view()


@post("/api/sessions/{session_id:str}/plan", status_code=200)
async def generate_plan(session_id: str, data: PlanRequest) -> SessionView:
    """Runs the plan request to completion; failures land in ``error``."""
    session = _session(session_id)
    await session.controller.generate_plan(add_more=data.add_more)
    return session.view()


@get("/api/sessions/{session_id:str}/prompts", media_type=MediaType.TEXT)
async def all_prompts(session_id: str) -> str:
    state = _session(session_id).store.state
    if not state.scenes:
        raise NotFoundException("No prompts generated yet")
    return format_all_prompts(state)


@post("/api/sessions/{session_id:str}/key", status_code=200)
async def select_key(session_id: str, data: KeyPayload) -> SessionView:
    session = _session(session_id)
    if not data.api_key.strip():
        raise ValidationException("api_key must not be blank")
    session.set_key(data.api_key.strip())
    return session.view()
