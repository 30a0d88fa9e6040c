"""
Abstract base class for session stores.
"""

import abc

from cognify.store.models import DocumentArtifact, Role, Session, SessionSummary, Turn


class AbstractSessionStore(abc.ABC):
    """Durable record of sessions, their turns, artifacts and mastery counters.

    Mutations of a session that does not exist raise ``SessionNotFoundError``;
    reads of a missing session return ``None`` or an empty list.
    """

    @abc.abstractmethod
    def create_session(self) -> str:
        """Allocate a new session with zeroed counters.

        Returns:
            The id of the new session.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def load_session(self, session_id: str) -> Session | None:
        """Return the session, or None when it does not exist."""
        raise NotImplementedError()

    @abc.abstractmethod
    def append_turn(self, session_id: str, role: Role, text: str) -> Turn:
        """Append a turn and refresh the session's ``updated_at``."""
        raise NotImplementedError()

    @abc.abstractmethod
    def list_turns(self, session_id: str) -> list[Turn]:
        """Return the session's turns in creation order."""
        raise NotImplementedError()

    @abc.abstractmethod
    def add_artifact(
        self,
        session_id: str,
        file_name: str,
        extracted_text: str,
        chapter_index: list[str],
    ) -> DocumentArtifact:
        """Insert a document artifact and refresh ``updated_at``."""
        raise NotImplementedError()

    @abc.abstractmethod
    def list_artifacts(self, session_id: str) -> list[DocumentArtifact]:
        """Return the session's artifacts in upload order."""
        raise NotImplementedError()

    @abc.abstractmethod
    def record_evaluation(self, session_id: str, correct: bool) -> Session:
        """Count one evaluated answer.

        ``total_evaluated`` grows by one, ``correct_count`` by one iff
        ``correct``. Both counters change together.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def rename_session(self, session_id: str, title: str) -> Session:
        """Set the session title."""
        raise NotImplementedError()

    @abc.abstractmethod
    def delete_session(self, session_id: str) -> None:
        """Delete a session together with its turns and artifacts."""
        raise NotImplementedError()

    @abc.abstractmethod
    def list_sessions_summary(self) -> list[SessionSummary]:
        """Return all sessions, most recently active first."""
        raise NotImplementedError()

    def active_artifact(self, session_id: str) -> DocumentArtifact | None:
        """Return the most recently uploaded artifact of the session."""
        artifacts = self.list_artifacts(session_id)
        return artifacts[-1] if artifacts else None
