"""Speech utilities using OpenAI for STT and TTS.

- speech_to_text: transcribe captured samples to text
- text_to_speech: synthesize a reply into float32 samples at 16 kHz

The OpenAI API key is loaded via dotenv from the environment variable
`OPENAI_API_KEY`.
"""

import os
import tempfile
import wave
from io import BytesIO
from pathlib import Path
from typing import Optional

import dotenv
import librosa
import numpy as np
import openai
import soundfile as sf

from cognify.util.logs import get_logger, log_function_duration

dotenv.load_dotenv()

logger = get_logger(__name__)

DEFAULT_STT_MODEL = "gpt-4o-mini-transcribe"
DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
DEFAULT_INSTRUCTIONS = "Speak like a warm, patient tutor at a calm pace."

# voices offered by the OpenAI speech endpoint; all of them speak English
OPENAI_VOICES = [
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "fable",
    "nova",
    "onyx",
    "sage",
    "shimmer",
]


def has_api_key() -> bool:
    return bool(os.getenv("OPENAI_API_KEY"))


def _to_wav_buffer(audio: np.ndarray, sample_rate: int) -> BytesIO:
    """Encode float or integer samples as a 16-bit PCM mono WAV file."""
    arr = np.asarray(audio)
    if arr.ndim > 1:
        arr = arr[:, 0]

    if np.issubdtype(arr.dtype, np.floating):
        int_samples = (np.clip(arr, -1.0, 1.0) * 32767.0).astype(np.int16)
    else:
        int_samples = arr.astype(np.int16)

    wav_buffer = BytesIO()
    with wave.open(wav_buffer, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(sample_rate)
        w.writeframes(int_samples.tobytes())

    wav_buffer.seek(0)
    # the extension tells the API which container it receives
    wav_buffer.name = "audio.wav"
    return wav_buffer


@log_function_duration()
def speech_to_text(
    audio: np.ndarray,
    language: Optional[str] = "en",
    sample_rate: int = 16000,
    *,
    model: str = DEFAULT_STT_MODEL,
) -> str:
    """Transcribe audio samples to text.

    Args:
        audio: Mono samples, float32 in [-1, 1] or integers.
        language: Optional language code hint (e.g. "en").
        sample_rate: Sample rate of `audio`.
        model: Transcription model name.

    Returns:
        The transcribed text, stripped.

    Raises:
        RuntimeError: If the API key is missing or the API call fails.
    """
    if not has_api_key():
        raise RuntimeError("OPENAI_API_KEY is not set in the environment")

    params = {"file": _to_wav_buffer(audio, sample_rate), "model": model}
    if language:
        params["language"] = language

    try:
        resp = openai.OpenAI().audio.transcriptions.create(**params)
    except openai.OpenAIError as e:
        raise RuntimeError(f"speech_to_text failed: {e}") from e

    return resp.text.strip()


@log_function_duration()
def text_to_speech(
    text: str,
    *,
    voice: str = "coral",
    instructions: Optional[str] = None,
    model: str = DEFAULT_TTS_MODEL,
    sample_rate: int = 16000,
) -> np.ndarray:
    """Synthesize speech and return mono float32 samples.

    Args:
        text: Text to speak.
        voice: Voice name, see `OPENAI_VOICES`.
        instructions: Optional style instructions for the voice.
        model: TTS model name.
        sample_rate: Sample rate of the returned samples.

    Raises:
        RuntimeError: If the API key is missing or the API call fails.
    """
    if not has_api_key():
        raise RuntimeError("OPENAI_API_KEY is not set in the environment")

    fd, tmp_name = tempfile.mkstemp(suffix=".wav")
    os.close(fd)
    speech_file_path = Path(tmp_name)
    try:
        try:
            with openai.OpenAI().audio.speech.with_streaming_response.create(
                model=model,
                voice=voice,
                input=text,
                response_format="wav",
                instructions=instructions or DEFAULT_INSTRUCTIONS,
            ) as response:
                response.stream_to_file(speech_file_path)
        except openai.OpenAIError as e:
            raise RuntimeError(f"text_to_speech failed: {e}") from e

        data, file_rate = sf.read(str(speech_file_path), dtype="float32")
    finally:
        speech_file_path.unlink(missing_ok=True)

    if data.ndim == 2:
        data = data[:, 0]
    if file_rate != sample_rate:
        data = librosa.resample(data, orig_sr=file_rate, target_sr=sample_rate)

    logger.debug(f"Synthesized {len(data) / sample_rate:.2f}s of speech")
    return data.astype(np.float32)
