"""Mastery tracking over evaluated learner answers."""

from dataclasses import dataclass
from typing import Iterable

from cognify.store.base import AbstractSessionStore
from cognify.store.models import Session
from cognify.util.logs import get_logger

logger = get_logger(__name__)

NO_DATA_LABEL = "No answers evaluated yet"


def mastery_ratio(correct: int, total: int) -> float | None:
    """Return ``correct / total``, or None when nothing was evaluated."""
    if total <= 0:
        return None
    return correct / total


@dataclass(frozen=True)
class Mastery:
    """Immutable tally of evaluation outcomes."""

    correct: int = 0
    total: int = 0

    def __post_init__(self):
        if not 0 <= self.correct <= self.total:
            raise ValueError(
                f"Invalid mastery tally: {self.correct} correct of {self.total}"
            )

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[bool]) -> "Mastery":
        mastery = cls()
        for outcome in outcomes:
            mastery = mastery.add(outcome)
        return mastery

    @classmethod
    def of(cls, session: Session) -> "Mastery":
        return cls(correct=session.correct_count, total=session.total_evaluated)

    def add(self, correct: bool) -> "Mastery":
        """Return a new tally with one more outcome recorded."""
        return Mastery(
            correct=self.correct + (1 if correct else 0), total=self.total + 1
        )

    @property
    def ratio(self) -> float | None:
        return mastery_ratio(self.correct, self.total)

    @property
    def percent(self) -> int:
        ratio = self.ratio
        return round(ratio * 100) if ratio is not None else 0

    @property
    def label(self) -> str:
        if self.total == 0:
            return NO_DATA_LABEL
        return f"{self.correct}/{self.total} correct ({self.percent}%)"


class ProgressTracker:
    """Persists evaluation outcomes into the session store."""

    def __init__(self, store: AbstractSessionStore):
        self._store = store

    def record(self, session_id: str, correct: bool) -> Mastery:
        """Record one evaluated answer and return the updated mastery.

        Outcomes are never revised, so every call moves the tally forward by
        exactly one answer.
        """
        session = self._store.record_evaluation(session_id, correct)
        mastery = Mastery.of(session)
        logger.info(
            f"Session {session_id}: answer marked "
            f"{'correct' if correct else 'incorrect'}, mastery {mastery.label}"
        )
        return mastery
