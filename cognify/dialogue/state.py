"""Explicit state of the conversation engine.

The engine never mutates state in place: each transition produces a new
``EngineState`` so a snapshot handed to a UI stays consistent.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from cognify.features.progress import Mastery
from cognify.store.models import Turn


class EnginePhase(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    REASONING = "reasoning"
    EVALUATING = "evaluating"
    RESPONDING = "responding"


Activity = Literal["idle", "listening", "speaking"]

ALLOWED_TRANSITIONS: dict[EnginePhase, set[EnginePhase]] = {
    EnginePhase.IDLE: {EnginePhase.CAPTURING, EnginePhase.REASONING},
    EnginePhase.CAPTURING: {EnginePhase.IDLE, EnginePhase.REASONING},
    EnginePhase.REASONING: {
        EnginePhase.EVALUATING,
        EnginePhase.RESPONDING,
        EnginePhase.IDLE,
    },
    EnginePhase.EVALUATING: {EnginePhase.RESPONDING, EnginePhase.IDLE},
    # barge-in: a new capture or quick reply pre-empts playback
    EnginePhase.RESPONDING: {
        EnginePhase.IDLE,
        EnginePhase.CAPTURING,
        EnginePhase.REASONING,
    },
}


class InvalidTransitionError(RuntimeError):
    pass


@dataclass(frozen=True)
class EngineState:
    """Everything a presentation layer needs to render the live session."""

    session_id: str | None = None
    title: str = ""
    phase: EnginePhase = EnginePhase.IDLE
    turns: tuple[Turn, ...] = ()
    suggestions: tuple[str, ...] = ()
    upload_status: str = ""
    notice: str = ""
    mastery: Mastery = Mastery()

    @property
    def activity(self) -> Activity:
        if self.phase is EnginePhase.CAPTURING:
            return "listening"
        if self.phase is EnginePhase.RESPONDING:
            return "speaking"
        return "idle"

    @property
    def busy(self) -> bool:
        """True while a model reply is pending for the current turn."""
        return self.phase in (EnginePhase.REASONING, EnginePhase.EVALUATING)

    def moved_to(self, phase: EnginePhase) -> "EngineState":
        if phase is self.phase:
            return self
        if phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransitionError(
                f"Cannot move from {self.phase.value} to {phase.value}"
            )
        return dataclasses.replace(self, phase=phase)

    def with_changes(self, **changes) -> "EngineState":
        return dataclasses.replace(self, **changes)
