import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Iterator

from cognify.errors import SessionNotFoundError
from cognify.store.base import AbstractSessionStore
from cognify.store.models import (
    DEFAULT_FILE_NAME,
    DocumentArtifact,
    Role,
    Session,
    SessionSummary,
    Turn,
    text_digest,
    utc_now,
)
from cognify.util.logs import get_logger

logger = get_logger(__name__)


class InMemorySessionStore(AbstractSessionStore):
    """Session store kept in process memory.

    Returned models are copies; changing them does not change the store.
    Subclasses persist the state by overriding ``_persist``.
    """

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._turns: dict[str, list[Turn]] = {}
        self._artifacts: dict[str, list[DocumentArtifact]] = {}
        self._lock = threading.RLock()
        self._last_tick: datetime | None = None

    # -- hooks -------------------------------------------------------------

    def _persist(self) -> None:
        """Write the current state to durable storage (no-op in memory)."""

    def _snapshot(self) -> Any:
        return None

    def _restore(self, snapshot: Any) -> None:
        pass

    @contextmanager
    def _mutating(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._snapshot()
            yield
            try:
                self._persist()
            except Exception:
                self._restore(snapshot)
                raise

    # -- helpers -----------------------------------------------------------

    def _tick(self) -> datetime:
        """Return a timestamp strictly later than any previously issued."""
        now = utc_now()
        if self._last_tick is not None and now <= self._last_tick:
            now = self._last_tick + timedelta(microseconds=1)
        self._last_tick = now
        return now

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        return session

    def _touch(self, session: Session, **updates: Any) -> Session:
        # revalidate so counter invariants hold on every update
        updated = Session.model_validate(
            {**session.model_dump(), **updates, "updated_at": self._tick()}
        )
        self._sessions[session.id] = updated
        return updated

    # -- AbstractSessionStore ------------------------------------------------

    def create_session(self) -> str:
        with self._mutating():
            now = self._tick()
            session = Session(created_at=now, updated_at=now)
            self._sessions[session.id] = session
            self._turns[session.id] = []
            self._artifacts[session.id] = []
        logger.info(f"Created session {session.id}")
        return session.id

    def load_session(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy() if session is not None else None

    def append_turn(self, session_id: str, role: Role, text: str) -> Turn:
        with self._mutating():
            session = self._require(session_id)
            turn = Turn(
                session_id=session_id,
                role=Role(role),
                text=text,
                created_at=self._tick(),
            )
            self._turns[session_id].append(turn)
            self._touch(session)
        return turn.model_copy()

    def list_turns(self, session_id: str) -> list[Turn]:
        with self._lock:
            return [t.model_copy() for t in self._turns.get(session_id, [])]

    def add_artifact(
        self,
        session_id: str,
        file_name: str,
        extracted_text: str,
        chapter_index: list[str],
    ) -> DocumentArtifact:
        with self._mutating():
            session = self._require(session_id)
            artifact = DocumentArtifact(
                session_id=session_id,
                file_name=file_name or DEFAULT_FILE_NAME,
                extracted_text=extracted_text or "",
                chapter_index=list(chapter_index or []),
                content_hash=text_digest(extracted_text or ""),
                uploaded_at=self._tick(),
            )
            self._artifacts[session_id].append(artifact)
            self._touch(session)
        logger.info(
            f"Added artifact {artifact.file_name!r} to session {session_id} "
            f"({len(artifact.chapter_index)} index entries)"
        )
        return artifact.model_copy(deep=True)

    def list_artifacts(self, session_id: str) -> list[DocumentArtifact]:
        with self._lock:
            return [
                a.model_copy(deep=True) for a in self._artifacts.get(session_id, [])
            ]

    def record_evaluation(self, session_id: str, correct: bool) -> Session:
        with self._mutating():
            session = self._require(session_id)
            updated = self._touch(
                session,
                correct_count=session.correct_count + (1 if correct else 0),
                total_evaluated=session.total_evaluated + 1,
            )
        return updated.model_copy()

    def rename_session(self, session_id: str, title: str) -> Session:
        with self._mutating():
            session = self._require(session_id)
            updated = self._touch(session, title=title)
        return updated.model_copy()

    def delete_session(self, session_id: str) -> None:
        with self._mutating():
            self._require(session_id)
            turns = self._turns.pop(session_id, [])
            artifacts = self._artifacts.pop(session_id, [])
            del self._sessions[session_id]
        logger.info(
            f"Deleted session {session_id} "
            f"({len(turns)} turns, {len(artifacts)} artifacts)"
        )

    def list_sessions_summary(self) -> list[SessionSummary]:
        with self._lock:
            sessions = sorted(
                self._sessions.values(), key=lambda s: s.updated_at, reverse=True
            )
            return [
                SessionSummary(
                    session=s.model_copy(),
                    turn_count=len(self._turns.get(s.id, [])),
                    artifact_count=len(self._artifacts.get(s.id, [])),
                )
                for s in sessions
            ]
