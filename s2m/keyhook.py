"""Optional host capability for choosing an API key."""
from __future__ import annotations

import logging
from typing import Callable, Protocol

from .config import Config

log = logging.getLogger(__name__)


class KeySelector(Protocol):
    def has_key(self) -> bool: ...

    def request_key(self) -> None: ...


class AlwaysAvailableKey:
    """Used when the host offers no key selection: assume a key is always there."""

    def has_key(self) -> bool:
        return True

    def request_key(self) -> None:
        pass


class ConfigKeySelector:
    """Key present when the config holds one; asking for one defers to the host.

    ``on_request`` is fire-and-forget: the TUI opens its key dialog, the web
    backend just records that the session needs a key.
    """

    def __init__(self, config: Config, on_request: Callable[[], None] | None = None) -> None:
        self.config = config
        self.on_request = on_request

    def has_key(self) -> bool:
        return bool(self.config.gemini_api_key)

    def request_key(self) -> None:
        log.info("API key selection requested")
        if self.on_request:
            self.on_request()
