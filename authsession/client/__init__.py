"""
Client Package

Client-side session handling: keeps the access token in memory, persists the
refresh token and cached user, and refreshes the access token before it
expires.

Modules:
- controller: session state machine and refresh timer
- transport: httpx client for the session endpoints
- storage: persisted session state (memory or JSON file)
"""

from .controller import ClientSession, SessionController, SessionState
from .storage import FileSessionStorage, MemorySessionStorage
from .transport import SessionTransport

__all__ = [
    "ClientSession",
    "SessionController",
    "SessionState",
    "FileSessionStorage",
    "MemorySessionStorage",
    "SessionTransport",
]
