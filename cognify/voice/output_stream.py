"""
Audio output streams used for tutor playback.

- AbstractAudioOutputStream: base class for all output streams
- SpeakerOutputStream: real-time playback using sounddevice
- VirtualSpeaker: simulated playback that only tracks timing
"""

import abc
import collections
import threading
import time
from typing import Optional

import numpy as np
import sounddevice as sd

from cognify.util.logs import get_logger

logger = get_logger(__name__)

SPEAKER_BLOCK_SECONDS = 0.1


class AbstractAudioOutputStream(abc.ABC):
    """Playback sink for synthesized tutor speech."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels

    def _as_frames(self, audio_data: np.ndarray) -> np.ndarray:
        """Return `audio_data` as float32 frames of shape (n, channels)."""
        frames = np.asarray(audio_data, dtype=np.float32)
        if frames.ndim == 1:
            frames = np.repeat(frames[:, None], self.channels, axis=1)
        return frames

    @abc.abstractmethod
    def play_chunk(self, audio_data: np.ndarray) -> None:
        """Queue an audio chunk for playback without blocking."""
        raise NotImplementedError()

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop playback immediately and drop everything queued."""
        raise NotImplementedError()

    @abc.abstractmethod
    def wait(self) -> None:
        """Block until all queued audio has been played or dropped."""
        raise NotImplementedError()

    @abc.abstractmethod
    def is_playing(self) -> bool:
        raise NotImplementedError()


class SpeakerOutputStream(AbstractAudioOutputStream):
    """Plays queued chunks on a sounddevice output stream.

    The device callback pulls frames from a list of pending chunks. When the
    list runs dry the callback writes silence and `wait()` is released.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
    ):
        """
        Initialize speaker output stream.

        Args:
            sample_rate: Audio sample rate
            channels: Number of audio channels
            device: Specific audio device ID (None for default)
        """
        super().__init__(sample_rate, channels)
        self.device = device
        self._pending: collections.deque = collections.deque()
        self._offset = 0
        self._lock = threading.Lock()
        self._drained = threading.Event()
        self._drained.set()

        self._stream = sd.OutputStream(
            samplerate=sample_rate,
            blocksize=int(sample_rate * SPEAKER_BLOCK_SECONDS),
            device=device,
            channels=channels,
            dtype="float32",
            callback=self._callback,
        )
        self._active = False

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug(f"Speaker callback status: {status}")

        written = 0
        with self._lock:
            while written < len(outdata) and self._pending:
                head = self._pending[0]
                n = min(len(outdata) - written, len(head) - self._offset)
                outdata[written : written + n] = head[self._offset : self._offset + n]
                written += n
                self._offset += n
                if self._offset >= len(head):
                    self._pending.popleft()
                    self._offset = 0
            if not self._pending:
                self._drained.set()
        outdata[written:] = 0

    def play_chunk(self, audio_data: np.ndarray) -> None:
        frames = self._as_frames(audio_data)
        if len(frames) == 0:
            return

        with self._lock:
            self._pending.append(frames)
            self._drained.clear()

        if not self._active:
            self._stream.start()
            self._active = True

    def stop(self) -> None:
        if not self._active:
            return

        self._stream.stop()
        self._active = False
        with self._lock:
            dropped = len(self._pending)
            self._pending.clear()
            self._offset = 0
            self._drained.set()
        logger.debug(f"Speaker stream stopped, {dropped} chunk(s) dropped")

    def wait(self) -> None:
        self._drained.wait()

    def is_playing(self) -> bool:
        if not self._active:
            return False
        with self._lock:
            return bool(self._pending)


class VirtualSpeaker(AbstractAudioOutputStream):
    """A speaker that simulates playback by tracking when audio would finish.

    Played chunks are kept so tests can inspect what was 'heard'.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        super().__init__(sample_rate, channels)
        self.heard: collections.deque = collections.deque()
        self._deadline = 0.0
        self._cond = threading.Condition()

    def play_chunk(self, audio_data: np.ndarray) -> None:
        duration = len(audio_data) / self.sample_rate
        with self._cond:
            self.heard.append(audio_data)
            self._deadline = max(self._deadline, time.monotonic()) + duration

    def stop(self) -> None:
        with self._cond:
            self._deadline = 0.0
            self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            while True:
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    return
                self._cond.wait(timeout=remaining)

    def is_playing(self) -> bool:
        with self._cond:
            return time.monotonic() < self._deadline

    def get_unprocessed_chunk(self) -> Optional[np.ndarray]:
        """Return the oldest chunk that was 'played', or None."""
        with self._cond:
            return self.heard.popleft() if self.heard else None
