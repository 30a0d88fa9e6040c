"""
Tests for the audio input streams.
"""

import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from cognify.voice.input_stream import AudioBuffer, MicrophoneInputStream, VirtualMicrophone


class TestAudioBuffer:
    """Test suite for AudioBuffer class."""

    def test_initialization(self):
        buffer = AudioBuffer(max_duration_seconds=10.0, sample_rate=8000)
        assert buffer.sample_rate == 8000
        assert buffer.max_samples == 8000 * 10
        assert buffer.get_duration() == 0.0

    def test_add_audio_stereo_is_flattened(self):
        buffer = AudioBuffer(sample_rate=16000)
        buffer.add_audio(np.random.randn(1600, 2).astype(np.float32))

        assert pytest.approx(buffer.get_duration(), 0.01) == 0.2

    def test_get_and_clear(self):
        buffer = AudioBuffer(sample_rate=16000)
        buffer.add_audio(np.random.randn(1600).astype(np.float32))
        buffer.add_audio(np.random.randn(800).astype(np.float32))

        retrieved = buffer.get_and_clear()
        assert len(retrieved) == 2400
        assert retrieved.dtype == np.float32
        assert buffer.get_duration() == 0.0
        assert len(buffer.get_and_clear()) == 0

    def test_overflow_keeps_most_recent_samples(self):
        buffer = AudioBuffer(max_duration_seconds=1.0, sample_rate=1000)
        buffer.add_audio(np.zeros(800, dtype=np.float32))
        buffer.add_audio(np.ones(400, dtype=np.float32))

        retrieved = buffer.get_and_clear()
        assert len(retrieved) == 1000
        assert retrieved[-400:].tolist() == [1.0] * 400
        assert retrieved[:600].tolist() == [0.0] * 600


def test_virtual_microphone_basic():
    mic = VirtualMicrophone()
    mic.start()

    mic.add_chunk(np.zeros(1600, dtype=np.float32))
    time.sleep(0.2)

    chunk = mic.get_unprocessed_chunk()
    mic.stop()

    assert chunk is not None
    assert len(chunk) == 1600
    assert not mic.is_running
    assert mic.get_unprocessed_chunk() is None


class TestMicrophoneInputStream:
    def test_initialization(self):
        stream = MicrophoneInputStream(sample_rate=8000, channels=2, block_size=512, device=1)

        assert stream.sample_rate == 8000
        assert stream.channels == 2
        assert stream.block_size == 512
        assert stream.device == 1
        assert not stream.is_running

    @patch("cognify.voice.input_stream.sd.InputStream")
    def test_start_and_stop(self, mock_input_stream_class):
        mock_input_stream_class.return_value.__enter__.return_value = MagicMock()
        stream = MicrophoneInputStream()

        stream.start()
        time.sleep(0.1)
        assert stream.is_running

        stream.stop()
        assert not stream.is_running
        kwargs = mock_input_stream_class.call_args.kwargs
        assert kwargs["samplerate"] == 16000
        assert kwargs["callback"] == stream._audio_callback

    def test_callback_fills_buffer(self):
        stream = MicrophoneInputStream()
        stream._audio_callback(np.ones((1024, 1), dtype=np.float32), 1024, None, None)

        chunk = stream.get_unprocessed_chunk()
        assert chunk.shape == (1024,)
