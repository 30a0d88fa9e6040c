"""Voice I/O adapter: capture a transcript, speak a reply, report lifecycle.

Playback is asynchronous and cancellable. Every call to ``speak`` gets a new
utterance id; only the utterance that is still current when its audio ends
reports ``speak_ended``, so a cancelled utterance never produces a late
"ended" event after its successor has started.
"""

import abc
import collections
import queue
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Sequence

import numpy as np
import sounddevice as sd

from cognify.config import VoiceConfig
from cognify.errors import CapabilityUnavailableError
from cognify.util.logs import get_logger
from cognify.voice import speech_api
from cognify.voice.endpointing import SpeechEndpointDetector
from cognify.voice.input_stream import AbstractAudioInputStream, MicrophoneInputStream
from cognify.voice.output_stream import (
    AbstractAudioOutputStream,
    SpeakerOutputStream,
    VirtualSpeaker,
)

logger = get_logger(__name__)

VoiceEventKind = Literal["capture_started", "capture_ended", "speak_started", "speak_ended"]

DEFAULT_MAX_EVENTS = 32


@dataclass(frozen=True)
class VoiceEvent:
    kind: VoiceEventKind
    utterance_id: int = 0


@dataclass(frozen=True)
class VoiceInfo:
    name: str
    locale: str


def select_voice(
    voices: Sequence[VoiceInfo],
    preferred: Iterable[str] = ("coral", "nova", "alloy"),
    locale: str = "en",
) -> Optional[VoiceInfo]:
    """Pick a playback voice.

    The first available name from `preferred` wins; otherwise any voice whose
    locale matches `locale` (by language prefix); otherwise the first voice.
    Returns None when no voices are available.
    """
    if not voices:
        return None

    by_name = {v.name: v for v in voices}
    for name in preferred:
        if name in by_name:
            return by_name[name]

    language = locale.lower().split("-")[0]
    for voice in voices:
        if voice.locale.lower().split("-")[0] == language:
            return voice

    return voices[0]


class AbstractVoiceAdapter(abc.ABC):
    """Capture/playback contract used by the conversation engine."""

    def __init__(
        self,
        output_stream: AbstractAudioOutputStream,
        max_events: int = DEFAULT_MAX_EVENTS,
    ):
        self.output_stream = output_stream
        self.events: queue.Queue = queue.Queue(maxsize=max_events)
        self._events_lock = threading.Lock()
        self._lock = threading.Lock()
        self._last_id = 0
        self._current_id: Optional[int] = None
        self._playback_thread: Optional[threading.Thread] = None

    @abc.abstractmethod
    def ensure_available(self) -> None:
        """Raise CapabilityUnavailableError when speech capture is impossible."""
        raise NotImplementedError()

    @abc.abstractmethod
    def _listen(self) -> str:
        """Block until one utterance is captured and return its transcript."""
        raise NotImplementedError()

    @abc.abstractmethod
    def _synthesize(self, text: str) -> np.ndarray:
        raise NotImplementedError()

    def _emit(self, event: VoiceEvent) -> None:
        with self._events_lock:
            try:
                self.events.put_nowait(event)
            except queue.Full:
                dropped = self.events.get_nowait()
                logger.debug(f"Voice event queue full, dropped {dropped}")
                self.events.put_nowait(event)

    def capture(self) -> str:
        """Capture one utterance and return its transcript ("" if none)."""
        self.ensure_available()
        self._emit(VoiceEvent("capture_started"))
        try:
            transcript = self._listen()
        finally:
            self._emit(VoiceEvent("capture_ended"))
        logger.info(f"Captured transcript: {transcript!r}")
        return transcript

    def speak(self, text: str) -> int:
        """Start speaking `text` in the background and return its utterance id.

        Any utterance still playing is cancelled first.
        """
        with self._lock:
            self._cancel_locked()
            self._last_id += 1
            utterance_id = self._last_id
            self._current_id = utterance_id
            self._emit(VoiceEvent("speak_started", utterance_id))
            thread = threading.Thread(
                target=self._play, args=(utterance_id, text), daemon=True
            )
            self._playback_thread = thread
        thread.start()
        return utterance_id

    def _play(self, utterance_id: int, text: str) -> None:
        try:
            audio = self._synthesize(text)
            with self._lock:
                if self._current_id != utterance_id:
                    return
                if len(audio) > 0:
                    self.output_stream.play_chunk(audio)
            self.output_stream.wait()
        except Exception:
            logger.exception(f"Playback of utterance {utterance_id} failed")
        finally:
            with self._lock:
                if self._current_id == utterance_id:
                    self._current_id = None
                    self._emit(VoiceEvent("speak_ended", utterance_id))

    def _cancel_locked(self) -> None:
        if self._current_id is None:
            return
        logger.debug(f"Cancelling utterance {self._current_id}")
        self._current_id = None
        self.output_stream.stop()

    def cancel(self) -> None:
        """Stop current playback without emitting speak_ended."""
        with self._lock:
            self._cancel_locked()

    def wait(self) -> None:
        """Block until the current utterance finished playing or was cancelled."""
        while True:
            with self._lock:
                thread = self._playback_thread
            if thread is None or not thread.is_alive():
                return
            thread.join()

    def is_speaking(self) -> bool:
        with self._lock:
            return self._current_id is not None


class SpeechVoiceAdapter(AbstractVoiceAdapter):
    """Microphone capture with OpenAI transcription, OpenAI TTS to the speaker."""

    def __init__(
        self,
        config: VoiceConfig = VoiceConfig(),
        input_stream: Optional[AbstractAudioInputStream] = None,
        output_stream: Optional[AbstractAudioOutputStream] = None,
        poll_seconds: float = 0.1,
    ):
        if output_stream is None:
            try:
                output_stream = SpeakerOutputStream(sample_rate=config.sample_rate)
            except sd.PortAudioError as e:
                raise CapabilityUnavailableError(f"No audio output device: {e}") from e
        super().__init__(output_stream)

        self.config = config
        self.input_stream = input_stream or MicrophoneInputStream(
            sample_rate=config.sample_rate
        )
        self.poll_seconds = poll_seconds

        available = [VoiceInfo(name, "en") for name in speech_api.OPENAI_VOICES]
        self.voice = select_voice(available, config.preferred_voices, config.language)
        logger.info(f"Using voice {self.voice.name if self.voice else None}")

    def ensure_available(self) -> None:
        if not speech_api.has_api_key():
            raise CapabilityUnavailableError(
                "Speech recognition needs OPENAI_API_KEY; type your answer instead."
            )
        if isinstance(self.input_stream, MicrophoneInputStream):
            try:
                sd.query_devices(kind="input")
            except (sd.PortAudioError, ValueError) as e:
                raise CapabilityUnavailableError(
                    f"No microphone available ({e}); type your answer instead."
                ) from e

    def _listen(self) -> str:
        detector = SpeechEndpointDetector(
            sample_rate=self.config.sample_rate,
            speech_threshold=self.config.speech_threshold,
            silence_seconds=self.config.silence_seconds,
            no_speech_timeout_seconds=self.config.no_speech_timeout_seconds,
            max_utterance_seconds=self.config.max_utterance_seconds,
        )

        speech = None
        self.input_stream.start()
        try:
            while speech is None:
                time.sleep(self.poll_seconds)
                chunk = self.input_stream.get_unprocessed_chunk()
                if chunk is None:
                    if not self.input_stream.is_running:
                        logger.warning("Input stream stopped during capture")
                        return ""
                    continue

                status, speech, _ = detector.add_chunk(chunk)
                if status == "timeout":
                    logger.info("No speech detected, capture aborted")
                    return ""
        finally:
            self.input_stream.stop()

        try:
            return speech_api.speech_to_text(
                speech,
                language=self.config.language,
                sample_rate=self.config.sample_rate,
            )
        except RuntimeError as e:
            logger.error(f"Transcription failed: {e}")
            return ""

    def _synthesize(self, text: str) -> np.ndarray:
        return speech_api.text_to_speech(
            text,
            voice=self.voice.name if self.voice else "coral",
            sample_rate=self.config.sample_rate,
        )


class VirtualVoiceAdapter(AbstractVoiceAdapter):
    """Scripted adapter: transcripts come from a list, playback is simulated.

    Each spoken word lasts `seconds_per_word` on a VirtualSpeaker.
    """

    def __init__(
        self,
        transcripts: Iterable[str] = (),
        available: bool = True,
        seconds_per_word: float = 0.05,
        sample_rate: int = 16000,
        max_events: int = DEFAULT_MAX_EVENTS,
    ):
        super().__init__(VirtualSpeaker(sample_rate=sample_rate), max_events=max_events)
        self.available = available
        self.seconds_per_word = seconds_per_word
        self.sample_rate = sample_rate
        self.spoken: list[str] = []
        self._transcripts = collections.deque(transcripts)

    def add_transcript(self, transcript: str) -> None:
        self._transcripts.append(transcript)

    def ensure_available(self) -> None:
        if not self.available:
            raise CapabilityUnavailableError("Speech recognition is not available")

    def _listen(self) -> str:
        if not self._transcripts:
            return ""
        return self._transcripts.popleft()

    def _synthesize(self, text: str) -> np.ndarray:
        self.spoken.append(text)
        n_words = max(len(text.split()), 1)
        n_samples = int(n_words * self.seconds_per_word * self.sample_rate)
        return np.zeros(max(n_samples, 1), dtype=np.float32)
