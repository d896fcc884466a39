"""WAV decoding and blocking playback through sounddevice."""

from __future__ import annotations

import io
import logging
import wave

import numpy as np

logger = logging.getLogger(__name__)

# numpy dtype per WAV sample width (bytes)
_SAMPLE_DTYPES = {
    1: np.uint8,
    2: np.int16,
    4: np.int32,
}


def decode_wav(data: bytes) -> tuple[np.ndarray, int]:
    """Decode WAV bytes into float32 samples.

    Args:
        data: A complete RIFF/WAV file.

    Returns:
        Tuple of (samples shaped (frames, channels), sample rate).

    Raises:
        ValueError: If the data is not PCM WAV with a supported sample width.
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            channels = wav_file.getnchannels()
            sample_width = wav_file.getsampwidth()
            sample_rate = wav_file.getframerate()
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as e:
        raise ValueError(f"Invalid WAV data: {e}") from e

    dtype = _SAMPLE_DTYPES.get(sample_width)
    if dtype is None:
        raise ValueError(f"Unsupported WAV sample width: {sample_width} bytes")

    audio = np.frombuffer(frames, dtype=dtype).astype(np.float32)
    if dtype is np.uint8:
        audio = (audio - 128.0) / 128.0
    else:
        audio /= float(np.iinfo(dtype).max)

    return audio.reshape(-1, channels), sample_rate


def play_wav(data: bytes, device: int | str | None = None) -> None:
    """Play WAV bytes and block until playback finishes.

    Args:
        data: A complete RIFF/WAV file.
        device: Optional sounddevice output device.
    """
    import sounddevice as sd

    audio, sample_rate = decode_wav(data)
    logger.debug(f"Playing {len(audio) / sample_rate:.2f}s of audio at {sample_rate} Hz")

    sd.play(audio, sample_rate, device=device)
    sd.wait()
