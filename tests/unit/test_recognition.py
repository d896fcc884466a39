"""Unit tests for fixed-window speech recognition."""

from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from ferry_assist.voice.recognition import SAMPLE_RATE, SpeechRecognizer


def stream_feeding(recognizer: SpeechRecognizer, chunks: list[np.ndarray]):
    """Return an _open_stream replacement that delivers the given chunks."""
    stream = MagicMock()

    def open_stream() -> MagicMock:
        for chunk in chunks:
            recognizer._audio_callback(chunk, len(chunk), None, None)
        return stream

    return open_stream, stream


class TestSpeechRecognizer:
    """Tests for SpeechRecognizer."""

    def test_initialization(self) -> None:
        """Test default values."""
        recognizer = SpeechRecognizer()
        assert recognizer.model_size == "small"
        assert recognizer.language == "ja"
        assert recognizer.capture_seconds == 3.0
        assert recognizer.is_capturing is False
        assert recognizer._model is None

    @pytest.mark.asyncio
    async def test_capture_transcribes_window(self) -> None:
        """Test captured audio is concatenated and transcribed."""
        recognizer = SpeechRecognizer(capture_seconds=0.01)
        chunks = [np.full((160, 1), 0.1, dtype=np.float32), np.full((160, 1), 0.2, dtype=np.float32)]
        open_stream, stream = stream_feeding(recognizer, chunks)

        with patch.object(recognizer, "_open_stream", side_effect=open_stream), patch.object(
            recognizer, "_transcribe", return_value="フェリーはどこ"
        ) as mock_transcribe:
            text = await recognizer.capture()

        assert text == "フェリーはどこ"
        audio = mock_transcribe.call_args.args[0]
        assert audio.shape == (320,)
        assert audio.dtype == np.float32
        stream.stop.assert_called_once()
        stream.close.assert_called_once()
        assert recognizer.is_capturing is False

    @pytest.mark.asyncio
    async def test_capture_waits_full_window(self) -> None:
        """Test capture does not return before the window ends."""
        recognizer = SpeechRecognizer()
        open_stream, _ = stream_feeding(recognizer, [np.zeros((160, 1), dtype=np.float32)])

        with patch.object(recognizer, "_open_stream", side_effect=open_stream), patch.object(
            recognizer, "_transcribe", return_value="hi"
        ):
            started = time.monotonic()
            await recognizer.capture(window_seconds=0.1)
            elapsed = time.monotonic() - started

        assert elapsed >= 0.09

    @pytest.mark.asyncio
    async def test_capture_no_audio(self) -> None:
        """Test an empty recording returns an empty transcript."""
        recognizer = SpeechRecognizer(capture_seconds=0.01)
        open_stream, _ = stream_feeding(recognizer, [])

        with patch.object(recognizer, "_open_stream", side_effect=open_stream), patch.object(
            recognizer, "_transcribe"
        ) as mock_transcribe:
            assert await recognizer.capture() == ""

        mock_transcribe.assert_not_called()

    @pytest.mark.asyncio
    async def test_capture_device_error(self) -> None:
        """Test a microphone failure is reported as no speech."""
        recognizer = SpeechRecognizer(capture_seconds=0.01)

        with patch.object(recognizer, "_open_stream", side_effect=OSError("no input device")):
            assert await recognizer.capture() == ""

        assert recognizer.is_capturing is False

    @pytest.mark.asyncio
    async def test_capture_buffer_reset_between_windows(self) -> None:
        """Test audio from one capture never leaks into the next."""
        recognizer = SpeechRecognizer(capture_seconds=0.01)
        first, _ = stream_feeding(recognizer, [np.ones((100, 1), dtype=np.float32)])
        second, _ = stream_feeding(recognizer, [np.ones((50, 1), dtype=np.float32)])
        lengths: list[int] = []

        def transcribe(audio: np.ndarray) -> str:
            lengths.append(len(audio))
            return "ok"

        with patch.object(recognizer, "_transcribe", side_effect=transcribe):
            with patch.object(recognizer, "_open_stream", side_effect=first):
                await recognizer.capture()
            with patch.object(recognizer, "_open_stream", side_effect=second):
                await recognizer.capture()

        assert lengths == [100, 50]

    @pytest.mark.asyncio
    async def test_overlapping_capture_rejected(self) -> None:
        """Test a second capture while one is running is refused."""
        recognizer = SpeechRecognizer(capture_seconds=0.05)
        open_stream, _ = stream_feeding(recognizer, [])

        with patch.object(recognizer, "_open_stream", side_effect=open_stream):
            first = asyncio.create_task(recognizer.capture())
            await asyncio.sleep(0.01)
            with pytest.raises(RuntimeError, match="already in progress"):
                await recognizer.capture()
            assert await first == ""

    def test_transcribe_joins_segments(self) -> None:
        """Test segments are joined and partials reported."""
        partials: list[str] = []
        recognizer = SpeechRecognizer(on_partial=partials.append)
        model = MagicMock()
        model.transcribe.return_value = (
            [SimpleNamespace(text=" フェリーは"), SimpleNamespace(text="どこ ")],
            SimpleNamespace(language="ja", language_probability=0.98),
        )
        recognizer._model = model

        text = recognizer._transcribe(np.zeros(SAMPLE_RATE, dtype=np.float32))

        assert text == "フェリーはどこ"
        assert partials == ["フェリーは", "フェリーはどこ"]
        assert model.transcribe.call_args.kwargs["language"] == "ja"

    @pytest.mark.asyncio
    async def test_warmup_loads_model_once(self) -> None:
        """Test warmup loads the model only when missing."""
        recognizer = SpeechRecognizer()

        with patch.object(recognizer, "_load_model") as mock_load:
            await recognizer.warmup()
            recognizer._model = MagicMock()
            await recognizer.warmup()

        mock_load.assert_called_once()
        await recognizer.cleanup()
