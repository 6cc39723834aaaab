"""SSE session-state streaming route."""
from __future__ import annotations

from litestar import get
from litestar.exceptions import NotFoundException
from litestar.response import ServerSentEvent, ServerSentEventMessage

from webui.backend.session_manager import session_manager


@get("/api/sessions/{session_id:str}/stream", media_type="text/event-stream")
async def stream_session(session_id: str) -> ServerSentEvent:
    if session_manager.get(session_id) is None:
        raise NotFoundException(f"Session {session_id!r} not found")

    async def _generate():
        async for view in session_manager.stream(session_id):
            yield ServerSentEventMessage(data=view.model_dump_json(), event="state")

    return ServerSentEvent(_generate())
