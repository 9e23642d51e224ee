"""
Runtime configuration.

Values are resolved in this order:
    1. explicit arguments (CLI flags)
    2. environment variables
    3. package defaults

Paths are produced by functions instead of module constants so that tests
can point everything at a temporary directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_BASE_URL = "http://localhost:8000/api"

ENV_BASE_URL = "COURSEADMIN_BASE_URL"
ENV_SESSION_FILE = "COURSEADMIN_SESSION_FILE"
ENV_TIMEOUT = "COURSEADMIN_TIMEOUT"

# The API is usually reached through an ngrok tunnel, which serves an HTML
# warning page unless this header is present.
BYPASS_HEADER = ("ngrok-skip-browser-warning", "true")


@dataclass
class Settings:
    base_url: str
    session_path: Path
    timeout: Optional[float] = None


def default_session_path() -> Path:
    """
    Return the default location of the persisted session token.
    """
    return Path.home() / ".courseadmin" / "session.json"


def _parse_timeout(raw: str | None) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Invalid timeout: {raw!r}") from None
    return value if value > 0 else None


def load_settings(
    base_url: str | None = None,
    session_path: str | Path | None = None,
    timeout: float | None = None,
) -> Settings:
    """
    Build Settings from arguments, falling back to environment and defaults.
    """
    url = base_url or os.environ.get(ENV_BASE_URL) or DEFAULT_BASE_URL

    if session_path is not None:
        path = Path(session_path)
    elif os.environ.get(ENV_SESSION_FILE):
        path = Path(os.environ[ENV_SESSION_FILE])
    else:
        path = default_session_path()

    if timeout is None:
        timeout = _parse_timeout(os.environ.get(ENV_TIMEOUT))

    return Settings(base_url=url.strip().rstrip("/"), session_path=path.expanduser(), timeout=timeout)
