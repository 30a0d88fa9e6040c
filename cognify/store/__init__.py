"""
Session persistence.

- AbstractSessionStore: contract shared by all stores
- InMemorySessionStore: process-local store
- JsonSessionStore: store persisted to a JSON file
"""

from pathlib import Path

from cognify.store.base import AbstractSessionStore
from cognify.store.json_store import JsonSessionStore
from cognify.store.memory import InMemorySessionStore
from cognify.store.models import (
    DocumentArtifact,
    Role,
    Session,
    SessionSummary,
    Turn,
)


def make_session_store(path: str | Path | None) -> AbstractSessionStore:
    """Return a JSON-backed store for ``path``, or an in-memory one for None."""
    if path is None:
        return InMemorySessionStore()
    return JsonSessionStore(path)


__all__ = [
    "AbstractSessionStore",
    "DocumentArtifact",
    "InMemorySessionStore",
    "JsonSessionStore",
    "Role",
    "Session",
    "SessionSummary",
    "Turn",
    "make_session_store",
]
