"""
Persistent storage for the API session token.

This module manages one small JSON file (default: ~/.courseadmin/session.json):

    {"authToken": "<bearer token>"}

Design rationale:
- the token is the only state shared between management screens
- it is read through an explicit SessionContext handed to the transport
  client, never through a module-level global, so tests and several
  sessions can run side by side
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from courseadmin.config import default_session_path


SESSION_KEY = "authToken"


def _resolve(path: str | Path | None) -> Path:
    return Path(path) if path is not None else default_session_path()


def load_session_token(path: str | Path | None = None) -> Optional[str]:
    """
    Load the token from the session file.

    Returns None if the file does not exist, is invalid, or holds no token.
    A missing token is not an error: requests are simply sent unauthenticated.
    """
    session_path = _resolve(path)

    if not session_path.exists():
        return None

    try:
        data = json.loads(session_path.read_text(encoding="utf-8"))
        token = data.get(SESSION_KEY)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        return None

    if not isinstance(token, str):
        return None
    token = token.strip()
    return token or None


def save_session_token(token: str, path: str | Path | None = None) -> None:
    """
    Save the token, creating parent directories if needed.
    """
    session_path = _resolve(path)
    session_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {SESSION_KEY: token.strip()}
    session_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def clear_session_token(path: str | Path | None = None) -> bool:
    """
    Remove the session file. Returns True if a file was removed.
    """
    session_path = _resolve(path)
    try:
        session_path.unlink()
    except FileNotFoundError:
        return False
    return True


@dataclass
class SessionContext:
    """
    Session handed to the transport client.

    With a path, the token is re-read on every request, so `courseadmin login`
    in another terminal takes effect without restarting. A fixed token (tests,
    scripts) bypasses the file entirely.
    """

    path: Optional[Path] = None
    fixed_token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        if self.fixed_token is not None:
            return self.fixed_token or None
        if self.path is None:
            return None
        return load_session_token(self.path)
