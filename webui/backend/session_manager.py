"""Session lifecycle: create, look up, drop, and stream state snapshots."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import AsyncIterator

from s2m.config import Config
from s2m.keyhook import ConfigKeySelector
from s2m.state import SessionState, SessionStore
from s2m.workflow import StoryboardController, initial_state

from .models import SessionView

log = logging.getLogger(__name__)


class Session:
    """One browser session: its own config copy, store and controller."""

    def __init__(self, session_id: str, config: Config, use_placeholders: bool = False) -> None:
        self.session_id = session_id
        self.config = config
        self.use_placeholders = use_placeholders
        self.needs_key = False
        self.created_at = time.time()
        self.selector = ConfigKeySelector(config, on_request=self._on_key_request)
        self.store = SessionStore(initial_state(config, self.selector))
        self.controller = StoryboardController(
            self.store,
            config,
            key_selector=self.selector,
            use_placeholders=use_placeholders,
        )

    def _on_key_request(self) -> None:
        # The browser shows its key dialog when it sees needs_key
        self.needs_key = True

    def set_key(self, api_key: str) -> None:
        self.config.gemini_api_key = api_key
        self.needs_key = False
        self.controller.key_selected()

    def view(self, state: SessionState | None = None) -> SessionView:
        return SessionView.from_state(
            self.session_id,
            state or self.store.state,
            needs_key=self.needs_key,
            test_mode=self.use_placeholders,
        )


class SessionManager:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(self, use_placeholders: bool = False, config: Config | None = None) -> Session:
        """Start a session with a private copy of the saved config."""
        session_id = str(uuid.uuid4())[:8]
        base = config or Config.load()
        session = Session(session_id, replace(base), use_placeholders=use_placeholders)
        self._sessions[session_id] = session
        log.info("Session %s created (test_mode=%s)", session_id, use_placeholders)
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def drop(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def stream(self, session_id: str) -> AsyncIterator[SessionView]:
        """Yields the current snapshot, then one per change."""
        session = self._sessions.get(session_id)
        if session is None:
            return
        queue: asyncio.Queue[SessionState] = asyncio.Queue()
        unsubscribe = session.store.subscribe(queue.put_nowait)
        try:
            yield session.view()
            while True:
                state = await queue.get()
                yield session.view(state)
        finally:
            unsubscribe()


# Singleton
session_manager = SessionManager()
