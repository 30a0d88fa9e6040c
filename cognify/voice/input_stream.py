"""
Audio input streams feeding speech capture.

- AudioBuffer: thread-safe buffer for captured samples
- AbstractAudioInputStream: background-thread base class
- MicrophoneInputStream: real-time microphone input (sounddevice)
- VirtualMicrophone: scripted input for tests and simulations
"""

import abc
import collections
import queue
import threading
from typing import Optional

import numpy as np
import sounddevice as sd

from cognify.util.logs import get_logger

logger = get_logger(__name__)

POLL_SECONDS = 0.05


class AudioBuffer:
    """Thread-safe buffer of mono samples bounded to the most recent audio."""

    def __init__(self, max_duration_seconds: float = 60.0, sample_rate: int = 16000):
        """
        Args:
            max_duration_seconds: Oldest samples are dropped beyond this length
            sample_rate: Audio sample rate
        """
        self.sample_rate = sample_rate
        self.max_samples = int(max_duration_seconds * sample_rate)
        self._chunks: collections.deque = collections.deque()
        self._size = 0
        self._lock = threading.Lock()

    def _drop_oldest(self, count: int) -> None:
        while count > 0:
            head = self._chunks[0]
            if len(head) <= count:
                self._chunks.popleft()
                count -= len(head)
                self._size -= len(head)
            else:
                self._chunks[0] = head[count:]
                self._size -= count
                count = 0

    def add_audio(self, audio_data: np.ndarray) -> None:
        """Append samples; multi-channel input is flattened."""
        samples = np.asarray(audio_data, dtype=np.float32).reshape(-1)
        with self._lock:
            self._chunks.append(samples)
            self._size += len(samples)
            excess = self._size - self.max_samples
            if excess > 0:
                self._drop_oldest(excess)
                logger.warning(
                    f"Audio buffer full, dropped {excess / self.sample_rate:.2f}s of audio"
                )

    def get_and_clear(self) -> np.ndarray:
        """Return all buffered samples as float32 and empty the buffer."""
        with self._lock:
            chunks, self._chunks = list(self._chunks), collections.deque()
            self._size = 0
        if not chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(chunks)

    def get_duration(self) -> float:
        with self._lock:
            return self._size / self.sample_rate


class AbstractAudioInputStream(abc.ABC):
    """Input stream whose background thread fills an `AudioBuffer`."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self._buffer = AudioBuffer(sample_rate=sample_rate)
        self._stop_event = threading.Event()
        self._stop_event.set()
        self._thread: Optional[threading.Thread] = None

    @abc.abstractmethod
    def _capture_loop(self) -> None:
        """Feed `self._buffer` until `self._stop_event` is set."""
        raise NotImplementedError()

    def _run(self) -> None:
        try:
            self._capture_loop()
        finally:
            self._stop_event.set()

    def start(self) -> None:
        if self.is_running:
            return
        self._buffer.get_and_clear()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        logger.debug(f"{self.__class__.__name__} started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join()
        self._thread = None
        logger.debug(f"{self.__class__.__name__} stopped")

    @property
    def is_running(self) -> bool:
        return not self._stop_event.is_set()

    def get_unprocessed_chunk(self) -> Optional[np.ndarray]:
        """Return the audio captured since the last call, or None."""
        chunk = self._buffer.get_and_clear()
        return chunk if chunk.size else None


class MicrophoneInputStream(AbstractAudioInputStream):
    """Captures the default (or given) input device with sounddevice."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_size: int = 1024,
        device: Optional[int] = None,
    ):
        super().__init__(sample_rate, channels)
        self.block_size = block_size
        self.device = device

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.debug(f"Microphone status: {status}")
        self._buffer.add_audio(indata)

    def _capture_loop(self) -> None:
        try:
            with sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                blocksize=self.block_size,
                device=self.device,
                dtype="float32",
                callback=self._audio_callback,
            ):
                while not self._stop_event.wait(POLL_SECONDS):
                    pass
        except sd.PortAudioError as e:
            logger.error(f"Microphone unavailable: {e}")


class VirtualMicrophone(AbstractAudioInputStream):
    """Input stream fed by `add_chunk`, optionally paced in real time."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1, realtime: bool = False):
        super().__init__(sample_rate, channels)
        self.realtime = realtime
        self._incoming: queue.Queue = queue.Queue()

    def add_chunk(self, chunk: np.ndarray) -> None:
        """Queue audio to be 'heard' by the microphone."""
        self._incoming.put(chunk)

    def _capture_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                chunk = self._incoming.get(timeout=POLL_SECONDS)
            except queue.Empty:
                continue
            if self.realtime and self._stop_event.wait(len(chunk) / self.sample_rate):
                break
            self._buffer.add_audio(chunk)
