"""Service layer for the brokerage client.

This package exposes session persistence, the consistency coordinator
that keeps view state in sync with the backend, dashboard aggregates
and the health probe.
"""

from .coordinator import ConsistencyCoordinator  # noqa: F401
from .session_store import FileSessionStore, InMemorySessionStore, SessionStore  # noqa: F401
