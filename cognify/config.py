"""Configuration management for the cognify tutor."""

from pathlib import Path

from pydantic import BaseModel, Field

from cognify.util.io import DEFAULT_STORE_FILE


class ModelConfig(BaseModel):
    """Configuration for the generative model service."""

    text_model: str = Field(
        default="gpt-4o-mini-2024-07-18",
        description="Model used for dialogue turns and index generation",
    )

    temperature: float = Field(
        default=0.3, description="Sampling temperature for dialogue turns"
    )


class DialogueConfig(BaseModel):
    """Configuration for the conversation engine."""

    history_window: int = Field(
        default=6, ge=1, description="Number of previous turns sent to the model"
    )

    document_char_budget: int = Field(
        default=20_000,
        ge=1,
        description="Maximum characters of the active document sent per turn",
    )

    title_max_chars: int = Field(
        default=40, ge=1, description="Length limit for derived session titles"
    )

    voice_turn_prefix: str = Field(
        default="🎤 ",
        description="Presentation marker prepended to voice-captured learner turns",
    )


class IndexConfig(BaseModel):
    """Configuration for study index generation."""

    char_budget: int = Field(
        default=8_000,
        ge=1,
        description="Characters of the document prefix used to build the index",
    )

    sentinel_label: str = Field(
        default="Index unavailable",
        description="Single label stored when index generation fails",
    )

    memo_size: int = Field(
        default=128,
        ge=1,
        description="Distinct documents whose study index is kept in memory",
    )


class VoiceConfig(BaseModel):
    """Configuration for speech capture and playback."""

    enabled: bool = Field(default=True, description="Enable the voice interface")

    language: str = Field(default="en", description="Speech recognition locale")

    preferred_voices: list[str] = Field(
        default_factory=lambda: ["coral", "nova", "alloy"],
        description="Higher-quality voices to prefer when available",
    )

    sample_rate: int = Field(default=16000, description="Audio sample rate in Hz")

    speech_threshold: float = Field(
        default=0.02, description="RMS level above which audio counts as speech"
    )

    silence_seconds: float = Field(
        default=1.2, description="Trailing silence that finalizes an utterance"
    )

    no_speech_timeout_seconds: float = Field(
        default=8.0, description="Give up capturing when nobody starts speaking"
    )

    max_utterance_seconds: float = Field(
        default=30.0, description="Hard limit for a single captured utterance"
    )


class StorageConfig(BaseModel):
    """Configuration for the session store."""

    path: Path | None = Field(
        default=DEFAULT_STORE_FILE,
        description="JSON file holding sessions; None keeps everything in memory",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    dialogue: DialogueConfig = Field(default_factory=DialogueConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def save_to_file(self, filepath: str | Path) -> None:
        """Save configuration to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_from_file(cls, filepath: str | Path) -> "AppConfig":
        """Load configuration from a JSON file."""
        with open(filepath, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
