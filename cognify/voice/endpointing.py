"""Energy-based end-of-utterance detection for microphone capture."""

from typing import List, Literal, Optional, Tuple

import numpy as np

from cognify.util.logs import get_logger

logger = get_logger(__name__)

State = Literal["waiting", "listening", "timeout"]


def chunk_rms(chunk: np.ndarray) -> float:
    """Root mean square level of a chunk (first channel only)."""
    if chunk.ndim > 1:
        chunk = chunk[:, 0]
    if len(chunk) == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(chunk, dtype=np.float64))))


class SpeechEndpointDetector:
    """Splits a stream of audio chunks into a single spoken utterance.

    The detector waits until the level rises above `speech_threshold`, then
    buffers audio until `silence_seconds` of quiet follow. If nobody starts
    speaking within `no_speech_timeout_seconds`, it reports "timeout".
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        speech_threshold: float = 0.02,
        silence_seconds: float = 1.2,
        no_speech_timeout_seconds: float = 8.0,
        max_utterance_seconds: float = 30.0,
    ) -> None:
        self.sample_rate = sample_rate
        self.speech_threshold = speech_threshold
        self._silence_limit = int(silence_seconds * sample_rate)
        self._timeout_limit = int(no_speech_timeout_seconds * sample_rate)
        self._max_samples = int(max_utterance_seconds * sample_rate)

        self._audio_buffer: List[np.ndarray] = []
        self._buffered_samples = 0
        self._silent_samples = 0
        self._waited_samples = 0
        self._state: State = "waiting"

    def add_chunk(
        self, audio_chunk: np.ndarray
    ) -> Tuple[State, Optional[np.ndarray], bool]:
        """Feed one chunk of captured audio.

        Args:
            audio_chunk: Audio samples (float32).

        Returns:
            Tuple of (status, optional_speech, status_changed):
            - status: "waiting" before speech starts or after an utterance
              was finalized, "listening" while speech is buffered, "timeout"
              when no speech started in time
            - optional_speech: the finished utterance, only on the call that
              finalized it
            - status_changed: True if the status changed during this call
        """
        if self._state == "timeout":
            return self._state, None, False

        loud = chunk_rms(audio_chunk) >= self.speech_threshold

        if self._state == "waiting":
            if not loud:
                self._waited_samples += len(audio_chunk)
                if self._waited_samples >= self._timeout_limit:
                    logger.debug("No speech detected before timeout")
                    self._state = "timeout"
                    return self._state, None, True
                return self._state, None, False

            logger.debug("Speech started")
            self._state = "listening"
            self._buffer(audio_chunk)
            return self._state, None, True

        self._buffer(audio_chunk)
        self._silent_samples = 0 if loud else self._silent_samples + len(audio_chunk)

        if (
            self._silent_samples >= self._silence_limit
            or self._buffered_samples >= self._max_samples
        ):
            speech = np.concatenate(self._audio_buffer)
            logger.debug(
                f"Utterance finalized: {len(speech) / self.sample_rate:.2f} seconds"
            )
            self.reset()
            return self._state, speech, True

        return self._state, None, False

    def _buffer(self, audio_chunk: np.ndarray) -> None:
        self._audio_buffer.append(audio_chunk.copy())
        self._buffered_samples += len(audio_chunk)

    @property
    def status(self) -> State:
        return self._state

    @property
    def buffered_duration(self) -> float:
        return self._buffered_samples / self.sample_rate

    def reset(self) -> None:
        """Drop buffered audio and wait for the next utterance."""
        self._audio_buffer = []
        self._buffered_samples = 0
        self._silent_samples = 0
        self._waited_samples = 0
        self._state = "waiting"
