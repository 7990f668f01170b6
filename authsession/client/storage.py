"""
Client-side persistence for the session controller.

Only the minimum needed to survive a restart is persisted: the cached user
and the refresh token. The access token is never handed to storage.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

USER_KEY = "user"
REFRESH_TOKEN_KEY = "refreshToken"


class SessionStorage(Protocol):

    def load(self) -> Dict[str, Any]:
        """Return the persisted state, or an empty dict."""

    def save(self, user: Dict[str, Any], refresh_token: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MemorySessionStorage:
    """Keeps state in the instance; used by tests and short-lived clients."""

    def __init__(self, user: Optional[Dict[str, Any]] = None, refresh_token: Optional[str] = None):
        self._state: Dict[str, Any] = {}
        if user is not None and refresh_token is not None:
            self.save(user, refresh_token)

    def load(self) -> Dict[str, Any]:
        return dict(self._state)

    def save(self, user: Dict[str, Any], refresh_token: str) -> None:
        self._state = {USER_KEY: dict(user), REFRESH_TOKEN_KEY: refresh_token}

    def clear(self) -> None:
        self._state = {}


class FileSessionStorage:
    """
    JSON file storage.

    Writes go to a temporary file in the same directory and are renamed into
    place, so a crash never leaves a half-written file. The file is created
    with owner-only permissions.
    """

    def __init__(self, path: str):
        self._path = Path(path)

    def load(self) -> Dict[str, Any]:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self._path}: {e}")
            return {}

        if not isinstance(data, dict):
            return {}
        return data

    def save(self, user: Dict[str, Any], refresh_token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({USER_KEY: user, REFRESH_TOKEN_KEY: refresh_token}, f)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass


__all__ = [
    "SessionStorage",
    "MemorySessionStorage",
    "FileSessionStorage",
    "USER_KEY",
    "REFRESH_TOKEN_KEY",
]
