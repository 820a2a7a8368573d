"""
Client configuration.

Settings are read from environment variables.  Credentials may also be
supplied through a ``{NAME}_FILE`` variable pointing at a file holding
the value, so they can be mounted as Docker/Kubernetes secrets instead
of living in the environment.  When both are set the file wins.

Recognised keys:

``BROKERAGE_API_URL``
    Base URL of the ``/api`` routes.  Defaults to
    ``http://localhost:8080/api``.
``BROKERAGE_HEALTH_URL``
    Root used for ``/health`` and the API info document.  Defaults to the
    API URL with a trailing ``/api`` removed.
``BROKERAGE_SESSION_FILE``
    Where the logged-in identity is persisted.
``BROKERAGE_USERNAME`` / ``BROKERAGE_PASSWORD``
    Default login credentials for the command line.
``LOG_LEVEL``
    Logging level name.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080/api"
DEFAULT_SESSION_FILE = Path.home() / ".brokerage_client" / "session.json"


def read_setting(name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return ``name`` from the environment, preferring ``{name}_FILE``."""
    env = os.environ if environ is None else environ
    file_path = env.get(f"{name}_FILE")
    if file_path:
        try:
            return Path(file_path).read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning("Failed to read %s_FILE %s: %s", name, file_path, exc)
            return None
    return env.get(name) or None


def _health_root(api_url: str) -> str:
    root = api_url.rstrip("/")
    if root.endswith("/api"):
        root = root[: -len("/api")]
    return root


@dataclass(frozen=True)
class ClientConfig:
    api_url: str = DEFAULT_API_URL
    health_url: str = _health_root(DEFAULT_API_URL)
    session_file: Path = DEFAULT_SESSION_FILE
    username: Optional[str] = None
    password: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if environ is None else environ
        api_url = (env.get("BROKERAGE_API_URL") or DEFAULT_API_URL).rstrip("/")
        health_url = (env.get("BROKERAGE_HEALTH_URL") or _health_root(api_url)).rstrip("/")
        session_file = env.get("BROKERAGE_SESSION_FILE")
        return cls(
            api_url=api_url,
            health_url=health_url,
            session_file=Path(session_file).expanduser() if session_file else DEFAULT_SESSION_FILE,
            username=read_setting("BROKERAGE_USERNAME", env),
            password=read_setting("BROKERAGE_PASSWORD", env),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
