"""Shared pytest fixtures for Ferry Assist tests."""

from __future__ import annotations

import asyncio
import io
import time
import wave
from pathlib import Path

import pytest

from ferry_assist.config import EngineConfig, FerryConfig, TelemetryConfig
from ferry_assist.phrases import JAPANESE, PhraseBook
from ferry_assist.routes import RouteResolver, RouteStore
from ferry_assist.telemetry.monitor import TelemetryMonitor


class FakeSpeaker:
    """Records everything it is asked to say."""

    def __init__(self, speak_seconds: float = 0.0, result: bool = True) -> None:
        self.spoken: list[str] = []
        self.intervals: list[tuple[float, float]] = []
        self.speak_seconds = speak_seconds
        self.result = result

    async def speak(self, text: str, speaker_id: int | None = None) -> bool:
        start = time.monotonic()
        self.spoken.append(text)
        if self.speak_seconds:
            await asyncio.sleep(self.speak_seconds)
        self.intervals.append((start, time.monotonic()))
        return self.result


class FakeRecognizer:
    """Returns queued transcripts, one per capture."""

    def __init__(self, results: list[str] | None = None) -> None:
        self.results = list(results or [])
        self.windows: list[float | None] = []

    async def capture(self, window_seconds: float | None = None) -> str:
        self.windows.append(window_seconds)
        if not self.results:
            return ""
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for test data."""
    return tmp_path


@pytest.fixture
def fake_engine_exe(temp_dir: Path) -> Path:
    """An empty file named like the VOICEVOX executable."""
    path = temp_dir / "VOICEVOX" / "VOICEVOX.exe"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"")
    return path


@pytest.fixture
def mock_config(temp_dir: Path) -> FerryConfig:
    """Return test configuration with a temporary route database."""
    return FerryConfig(
        name="TestFerryAssist",
        version="0.1.0-test",
        log_level="DEBUG",
        database_path=str(temp_dir / "routes.db"),
        engine=EngineConfig(timeout_seconds=1.0, poll_interval=0.01),
        telemetry=TelemetryConfig(enabled=False),
    )


@pytest.fixture
def route_store(temp_dir: Path) -> RouteStore:
    """An open route store seeded with one crossing."""
    store = RouteStore(temp_dir / "routes.db")
    store.open(create=True)
    store.add_route("Calais", "Dover", "Calais", "Dover")
    yield store
    store.close()


@pytest.fixture
def resolver(route_store: RouteStore) -> RouteResolver:
    """A resolver in front of the seeded route store."""
    return RouteResolver(route_store)


@pytest.fixture
def monitor() -> TelemetryMonitor:
    """A fresh telemetry monitor."""
    return TelemetryMonitor()


@pytest.fixture
def phrases() -> PhraseBook:
    """The Japanese phrase book."""
    return JAPANESE


@pytest.fixture
def fake_speaker() -> FakeSpeaker:
    """A speaker that records what it says."""
    return FakeSpeaker()


@pytest.fixture
def fake_recognizer() -> FakeRecognizer:
    """A recognizer with no queued transcripts."""
    return FakeRecognizer()


@pytest.fixture
def wav_bytes() -> bytes:
    """A short 16-bit mono WAV file."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(24000)
        wav_file.writeframes(b"\x00\x00\xff\x7f\x01\x80" * 10)
    return buffer.getvalue()
