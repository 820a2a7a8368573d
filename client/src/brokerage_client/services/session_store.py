"""
Session stores holding the single logged-in identity.

``FileSessionStore`` persists the identity as a JSON document so it
survives restarts of the client; ``InMemorySessionStore`` keeps it for
the lifetime of the process only.  Both expose the same synchronous
contract: ``save``, ``current``, ``clear``, ``is_authenticated`` and
``is_administrator``.  Reads never raise: a missing, unreadable or
corrupt record is reported as "no session".

A store is an explicit handle.  The request gateway and the domain
client receive the store they should use; nothing reads a module-level
session.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..models import Identity

logger = logging.getLogger(__name__)

#: Key under which the identity record is stored.
SESSION_KEY = "user"


class SessionStore:
    """Base class for session stores."""

    def save(self, identity: Identity) -> None:
        raise NotImplementedError

    def current(self) -> Optional[Identity]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def is_authenticated(self) -> bool:
        return self.current() is not None

    def is_administrator(self) -> bool:
        identity = self.current()
        return bool(identity and identity.is_admin)


class InMemorySessionStore(SessionStore):
    def __init__(self, identity: Optional[Identity] = None) -> None:
        self._identity = identity

    def save(self, identity: Identity) -> None:
        self._identity = identity

    def current(self) -> Optional[Identity]:
        return self._identity

    def clear(self) -> None:
        self._identity = None


class FileSessionStore(SessionStore):
    """Persist the identity record in a JSON file.

    The file holds a single object ``{"user": {...}}``.  Writes replace
    the whole file; ``clear`` removes it.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _read_file(self) -> Dict[str, Any]:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_file(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        # The record carries a password.
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)

    def save(self, identity: Identity) -> None:
        self._write_file({SESSION_KEY: identity.to_record()})
        logger.debug("Saved session for %s to %s", identity.username, self.path)

    def current(self) -> Optional[Identity]:
        try:
            if not self.path.exists():
                return None
            record = self._read_file().get(SESSION_KEY)
        except (OSError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None
        if not record:
            return None
        try:
            return Identity.model_validate(record)
        except ValidationError as exc:
            logger.warning("Ignoring malformed session record in %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        else:
            logger.debug("Cleared session file %s", self.path)
