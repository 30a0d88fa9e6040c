"""
Conversation engine and the dialogue protocol it speaks with the model.

- engine.ConversationEngine: turn-taking state machine over a session
- state.EngineState / EnginePhase: immutable snapshot of the live session
- protocol: prompt construction and reply decomposition
"""

from cognify.dialogue.protocol import (
    DialogueReply,
    Evaluation,
    build_dialogue_prompt,
    decompose_reply,
    derive_title,
)
from cognify.dialogue.state import EnginePhase, EngineState, InvalidTransitionError

__all__ = [
    "DialogueReply",
    "EnginePhase",
    "EngineState",
    "Evaluation",
    "InvalidTransitionError",
    "build_dialogue_prompt",
    "decompose_reply",
    "derive_title",
]
