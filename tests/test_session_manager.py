import asyncio

from s2m.config import Config
from webui.backend.session_manager import SessionManager


def test_sessions_are_independent():
    manager = SessionManager()
    a = manager.create(use_placeholders=True, config=Config())
    b = manager.create(use_placeholders=True, config=Config())
    a.controller.set_story("only in a")

    assert a.session_id != b.session_id
    assert manager.get(b.session_id).store.state.story == ""
    assert manager.drop(a.session_id)
    assert manager.get(a.session_id) is None
    assert not manager.drop(a.session_id)


def test_session_config_is_a_private_copy():
    manager = SessionManager()
    base = Config(gemini_api_key="")
    session = manager.create(config=base)
    session.set_key("abc")
    assert session.config.gemini_api_key == "abc"
    assert base.gemini_api_key == ""


def test_stream_yields_snapshots_until_closed():
    manager = SessionManager()
    session = manager.create(use_placeholders=True, config=Config())

    async def run():
        stream = manager.stream(session.session_id)
        first = await stream.__anext__()
        session.controller.set_scene_count(7)
        second = await stream.__anext__()
        await stream.aclose()
        return first, second

    first, second = asyncio.run(run())
    assert first.scene_count == 3
    assert second.scene_count == 7
    assert session.store._listeners == []


def test_stream_unknown_session_is_empty():
    manager = SessionManager()

    async def run():
        return [view async for view in manager.stream("missing")]

    assert asyncio.run(run()) == []
