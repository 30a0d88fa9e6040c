import copy
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cognify.errors import StorageUnavailableError
from cognify.store.memory import InMemorySessionStore
from cognify.store.models import DocumentArtifact, Session, Turn
from cognify.util.io import DEFAULT_STORE_FILE, read_json, write_json
from cognify.util.logs import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1


class JsonSessionStore(InMemorySessionStore):
    """Session store persisted as a single JSON document.

    The whole store is rewritten after every mutation. A failed write rolls
    the in-memory state back and raises ``StorageUnavailableError``.
    """

    def __init__(self, path: str | Path = DEFAULT_STORE_FILE):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = read_json(self.path)
            sessions = [Session.model_validate(s) for s in data.get("sessions", [])]
            turns = [Turn.model_validate(t) for t in data.get("turns", [])]
            artifacts = [
                DocumentArtifact.model_validate(a) for a in data.get("artifacts", [])
            ]
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            raise StorageUnavailableError(
                f"Cannot read session store {self.path}: {e}"
            ) from e

        for session in sessions:
            self._sessions[session.id] = session
            self._turns[session.id] = []
            self._artifacts[session.id] = []
        for turn in turns:
            if turn.session_id in self._turns:
                self._turns[turn.session_id].append(turn)
        for artifact in artifacts:
            if artifact.session_id in self._artifacts:
                self._artifacts[artifact.session_id].append(artifact)

        stamps = [s.updated_at for s in sessions]
        self._last_tick = max(stamps) if stamps else None
        logger.debug(f"Loaded {len(sessions)} sessions from {self.path}")

    def _to_document(self) -> dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "sessions": [s.model_dump(mode="json") for s in self._sessions.values()],
            "turns": [
                t.model_dump(mode="json")
                for turns in self._turns.values()
                for t in turns
            ],
            "artifacts": [
                a.model_dump(mode="json")
                for artifacts in self._artifacts.values()
                for a in artifacts
            ],
        }

    def _persist(self) -> None:
        try:
            write_json(self._to_document(), self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write session store {self.path}: {e}")
            raise StorageUnavailableError(
                f"Cannot write session store {self.path}: {e}"
            ) from e

    def _snapshot(self) -> Any:
        return (
            dict(self._sessions),
            {k: list(v) for k, v in self._turns.items()},
            {k: list(v) for k, v in self._artifacts.items()},
            copy.copy(self._last_tick),
        )

    def _restore(self, snapshot: Any) -> None:
        self._sessions, self._turns, self._artifacts, self._last_tick = snapshot
