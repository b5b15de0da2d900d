"""Claude conversation session helpers."""

from .session import ClaudeSessionError
from .session import ClaudeSessionFileError
from .session import ClaudeSessionManager
from .session import ClaudeSessionNotFoundError
from .session import ClaudeSessionParseError
from .session import ClaudeSessionResult
from .session import ClaudeSessionSpawnError
from .session import ClaudeSessionTimeoutError
from .session import FileSessionStore
from .session import MemorySessionStore

__all__ = [
    "ClaudeSessionError",
    "ClaudeSessionFileError",
    "ClaudeSessionManager",
    "ClaudeSessionNotFoundError",
    "ClaudeSessionParseError",
    "ClaudeSessionResult",
    "ClaudeSessionSpawnError",
    "ClaudeSessionTimeoutError",
    "FileSessionStore",
    "MemorySessionStore",
]
