from .config import Config
from .state import AspectRatio, Scene, SessionState, SessionStore
from .workflow import StoryboardController, initial_state

__all__ = [
    "Config",
    "AspectRatio", "Scene", "SessionState", "SessionStore",
    "StoryboardController", "initial_state",
]
