"""Protocol definitions for dependency injection in the orchestrator.

These protocols define the capabilities the orchestrator consumes, enabling
loose coupling and easier testing.
"""

from __future__ import annotations

from typing import Protocol

from ferry_assist.routes import Route
from ferry_assist.telemetry.monitor import SessionState


class SpeakerProtocol(Protocol):
    """
    Protocol for speech output.

    Implementations serialize utterances and never raise on synthesis
    failure; they report it as False.
    """

    async def speak(self, text: str, speaker_id: int | None = None) -> bool:
        """Speak text and wait until playback finishes."""
        ...


class RecognizerProtocol(Protocol):
    """
    Protocol for fixed-window speech capture.

    A capture waits the full window, then returns the best transcript or an
    empty string.
    """

    async def capture(self, window_seconds: float | None = None) -> str:
        """Listen for one window and return the transcript."""
        ...


class SessionSourceProtocol(Protocol):
    """Protocol for whatever publishes telemetry-derived session state."""

    def snapshot(self) -> SessionState:
        """Return the latest published state."""
        ...


class RouteLookupProtocol(Protocol):
    """Protocol for directional ferry route lookup."""

    def get_route(self, departure_area: str, arrival_area: str) -> Route | None:
        """Return the route between two areas, or None."""
        ...
