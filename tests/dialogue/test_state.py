import pytest

from cognify.dialogue.state import (
    ALLOWED_TRANSITIONS,
    EnginePhase,
    EngineState,
    InvalidTransitionError,
)
from cognify.features.progress import Mastery


def test_initial_state():
    state = EngineState()

    assert state.phase is EnginePhase.IDLE
    assert state.activity == "idle"
    assert not state.busy
    assert state.mastery == Mastery()
    assert state.suggestions == ()


@pytest.mark.parametrize(
    "path",
    [
        [EnginePhase.CAPTURING, EnginePhase.REASONING, EnginePhase.EVALUATING, EnginePhase.RESPONDING, EnginePhase.IDLE],
        [EnginePhase.REASONING, EnginePhase.IDLE],
        [EnginePhase.CAPTURING, EnginePhase.IDLE],
        [EnginePhase.REASONING, EnginePhase.RESPONDING, EnginePhase.CAPTURING],
        [EnginePhase.REASONING, EnginePhase.RESPONDING, EnginePhase.REASONING],
    ],
)
def test_allowed_paths(path):
    state = EngineState()
    for phase in path:
        state = state.moved_to(phase)
    assert state.phase is path[-1]


@pytest.mark.parametrize(
    "start, target",
    [
        (EnginePhase.IDLE, EnginePhase.EVALUATING),
        (EnginePhase.IDLE, EnginePhase.RESPONDING),
        (EnginePhase.CAPTURING, EnginePhase.EVALUATING),
        (EnginePhase.EVALUATING, EnginePhase.CAPTURING),
        (EnginePhase.REASONING, EnginePhase.CAPTURING),
    ],
)
def test_illegal_transitions(start, target):
    assert target not in ALLOWED_TRANSITIONS[start]
    with pytest.raises(InvalidTransitionError):
        EngineState(phase=start).moved_to(target)


def test_moving_to_same_phase_is_a_no_op():
    state = EngineState(phase=EnginePhase.REASONING)
    assert state.moved_to(EnginePhase.REASONING) is state


def test_activity_and_busy():
    assert EngineState(phase=EnginePhase.CAPTURING).activity == "listening"
    assert EngineState(phase=EnginePhase.RESPONDING).activity == "speaking"
    assert EngineState(phase=EnginePhase.REASONING).busy
    assert EngineState(phase=EnginePhase.EVALUATING).busy
    assert not EngineState(phase=EnginePhase.RESPONDING).busy


def test_state_is_immutable():
    state = EngineState(title="Old")
    new = state.with_changes(title="New")

    assert state.title == "Old"
    assert new.title == "New"
    with pytest.raises(AttributeError):
        state.title = "Changed"
