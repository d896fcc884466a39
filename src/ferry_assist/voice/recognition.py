"""Fixed-window speech recognition using faster-whisper.

Records the microphone for a fixed window (three seconds by default),
whether or not the driver stops talking earlier, then transcribes the
recording.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable

import numpy as np

logger = logging.getLogger(__name__)

# Audio recording constants
SAMPLE_RATE = 16000  # 16kHz is optimal for Whisper
CHANNELS = 1
DTYPE = np.float32

DEFAULT_CAPTURE_SECONDS = 3.0


class SpeechRecognizer:
    """
    Capture a fixed-length utterance and return its transcript.

    Only one capture may run at a time; the buffer is cleared before each
    capture so results never leak between cycles.
    """

    def __init__(
        self,
        model_size: str = "small",
        language: str | None = "ja",
        device: str = "cpu",
        compute_type: str = "int8",
        input_device: str | int | None = None,
        capture_seconds: float = DEFAULT_CAPTURE_SECONDS,
        on_partial: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the recognizer.

        Args:
            model_size: Whisper model size (tiny, base, small, medium, large).
            language: Spoken language code, or None to auto-detect.
            device: Device to use for inference ("cpu", "cuda", "auto").
            compute_type: Computation type ("float16", "int8", "int8_float16").
            input_device: Optional audio input device name or index.
            capture_seconds: Default capture window.
            on_partial: Receives each transcribed segment (diagnostics only).
        """
        self.model_size = model_size
        self.language = language
        self.device = device
        self.compute_type = compute_type
        self.input_device = input_device
        self.capture_seconds = capture_seconds
        self.on_partial = on_partial

        # Model loaded lazily
        self._model: Any = None

        self._chunks: list[np.ndarray] = []
        self._capturing = False

        # Thread pool for blocking operations
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stt_")

        logger.debug(
            f"SpeechRecognizer initialized with model_size='{model_size}', "
            f"language='{language}', device='{device}'"
        )

    def _load_model(self) -> None:
        """Load the Whisper model (called in thread pool)."""
        if self._model is not None:
            return

        from faster_whisper import WhisperModel

        logger.info(f"Loading Whisper model '{self.model_size}' on device '{self.device}'...")
        self._model = WhisperModel(
            self.model_size,
            device=self.device,
            compute_type=self.compute_type,
            download_root=str(Path.home() / ".cache" / "whisper"),
        )
        logger.info(f"Whisper model '{self.model_size}' loaded successfully")

    async def warmup(self) -> None:
        """Load the model ahead of the first capture."""
        if self._model is None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(self._executor, self._load_model)

    def _reset(self) -> None:
        """Clear audio captured by a previous window."""
        self._chunks = []

    def _audio_callback(self, indata: np.ndarray, frames: int, time: Any, status: Any) -> None:
        """Collect incoming audio chunks (sounddevice callback thread)."""
        if status:
            logger.warning(f"Audio callback status: {status}")
        self._chunks.append(indata.copy())

    def _open_stream(self) -> Any:
        """Open and start a microphone input stream."""
        import sounddevice as sd

        stream = sd.InputStream(
            samplerate=SAMPLE_RATE,
            channels=CHANNELS,
            dtype=DTYPE,
            callback=self._audio_callback,
            device=self.input_device,
        )
        stream.start()
        return stream

    def _transcribe(self, audio: np.ndarray) -> str:
        """Blocking transcription in thread pool."""
        self._load_model()

        segments, info = self._model.transcribe(
            audio,
            language=self.language,
            beam_size=5,
            vad_filter=True,
        )

        text_parts: list[str] = []
        for segment in segments:
            text_parts.append(segment.text)
            if self.on_partial is not None:
                self.on_partial("".join(text_parts).strip())

        logger.debug(
            f"Transcription completed: language={info.language}, "
            f"probability={info.language_probability:.2f}"
        )
        return "".join(text_parts).strip()

    async def capture(self, window_seconds: float | None = None) -> str:
        """Listen for exactly one window and return the transcript.

        Args:
            window_seconds: Capture length; defaults to capture_seconds.

        Returns:
            The transcript, or an empty string if nothing was recognized
            or recognition failed.

        Raises:
            RuntimeError: If another capture is still running.
        """
        if self._capturing:
            raise RuntimeError("A capture is already in progress")

        window = self.capture_seconds if window_seconds is None else window_seconds
        self._capturing = True
        self._reset()

        try:
            stream = self._open_stream()
            logger.debug(f"Recording for {window:.1f}s")
            try:
                await asyncio.sleep(window)
            finally:
                stream.stop()
                stream.close()

            if not self._chunks:
                logger.info("No audio captured")
                return ""

            audio = np.concatenate(self._chunks).reshape(-1).astype(np.float32)

            loop = asyncio.get_running_loop()
            text = await loop.run_in_executor(self._executor, self._transcribe, audio)

            logger.info(f"Recognized: {text!r}")
            return text

        except Exception as e:
            logger.error(f"Speech recognition failed: {e}", exc_info=True)
            return ""

        finally:
            self._reset()
            self._capturing = False

    @property
    def is_capturing(self) -> bool:
        """Check if a capture window is open."""
        return self._capturing

    async def cleanup(self) -> None:
        """Cleanup resources."""
        self._executor.shutdown(wait=True)
        logger.debug("SpeechRecognizer cleanup complete")
