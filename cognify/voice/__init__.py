"""
Voice input and output for the tutor.

- AbstractVoiceAdapter: capture/speak contract with lifecycle events
- SpeechVoiceAdapter: microphone + OpenAI speech services + speaker
- VirtualVoiceAdapter: scripted transcripts and simulated playback
"""

from cognify.voice.adapter import (
    AbstractVoiceAdapter,
    SpeechVoiceAdapter,
    VirtualVoiceAdapter,
    VoiceEvent,
    VoiceInfo,
    select_voice,
)

__all__ = [
    "AbstractVoiceAdapter",
    "SpeechVoiceAdapter",
    "VirtualVoiceAdapter",
    "VoiceEvent",
    "VoiceInfo",
    "select_voice",
]
