"""Interaction orchestrator.

Manages the complete hotkey-triggered conversation:
hotkey → prompt + capture → intent → route lookup → spoken reply.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ferry_assist.intents import Intent, IntentClassifier
from ferry_assist.phrases import PhraseBook
from ferry_assist.protocols import (
    RecognizerProtocol,
    RouteLookupProtocol,
    SessionSourceProtocol,
    SpeakerProtocol,
)
from ferry_assist.telemetry.monitor import SessionState

logger = logging.getLogger(__name__)

# Conversation timing
DEFAULT_CAPTURE_SECONDS = 3.0
DEFAULT_POLL_INTERVAL = 0.1
MAX_CAPTURE_ATTEMPTS = 2


class OrchestratorState(str, Enum):
    """Where the orchestrator is in a cycle."""

    WAITING_FOR_HOTKEY = "waiting_for_hotkey"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    RESPONDING = "responding"
    EXITING = "exiting"


@dataclass
class CycleResult:
    """Outcome of one hotkey-triggered interaction."""

    recognized_text: str = ""
    intent: Intent | None = None
    reply: str | None = None
    failed: bool = False

    @property
    def exit_requested(self) -> bool:
        """Check if the driver asked the assistant to exit."""
        return self.intent is Intent.EXIT


@dataclass
class OrchestratorStatus:
    """Status information for the orchestrator."""

    state: OrchestratorState = OrchestratorState.WAITING_FOR_HOTKEY
    is_running: bool = False
    total_cycles: int = 0
    last_cycle_time: float | None = None
    last_text: str | None = None
    error: str | None = None


class HotkeyEdgeDetector:
    """Detect the moment a polled key goes from released to pressed."""

    def __init__(self) -> None:
        self.previous_pressed = False

    def update(self, pressed: bool) -> bool:
        """Record a poll result; True only on a rising edge."""
        rising = pressed and not self.previous_pressed
        self.previous_pressed = pressed
        return rising


AnswerListener = Callable[[CycleResult], Any]


class InteractionOrchestrator:
    """
    Drives hotkey-triggered conversations about the current ferry route.

    The orchestrator owns the session state it reads from the telemetry
    monitor and refreshes it at the start of every navigation query.
    """

    def __init__(
        self,
        speaker: SpeakerProtocol,
        recognizer: RecognizerProtocol,
        session_source: SessionSourceProtocol,
        routes: RouteLookupProtocol,
        poll_key_state: Callable[[], bool],
        phrases: PhraseBook,
        classifier: IntentClassifier | None = None,
        capture_seconds: float = DEFAULT_CAPTURE_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_capture_attempts: int = MAX_CAPTURE_ATTEMPTS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            speaker: Speech output (serialized, never raises).
            recognizer: Fixed-window speech capture.
            session_source: Publishes telemetry-derived session snapshots.
            routes: Ferry route lookup.
            poll_key_state: Returns whether the hotkey is currently held.
            phrases: Sentences to speak.
            classifier: Intent classifier; built from the phrase book if None.
            capture_seconds: Length of each capture window.
            poll_interval: Seconds between hotkey polls.
            max_capture_attempts: Captures per cycle before apologizing.
        """
        self.speaker = speaker
        self.recognizer = recognizer
        self.session_source = session_source
        self.routes = routes
        self.poll_key_state = poll_key_state
        self.phrases = phrases
        self.classifier = classifier or IntentClassifier.from_phrase_book(phrases)
        self.capture_seconds = capture_seconds
        self.poll_interval = poll_interval
        self.max_capture_attempts = max_capture_attempts

        self.session: SessionState = session_source.snapshot()
        self._edge = HotkeyEdgeDetector()
        self._status = OrchestratorStatus()
        self._running = False
        self._stop_requested = False
        self._answer_listeners: list[AnswerListener] = []

    def add_answer_listener(self, listener: AnswerListener) -> None:
        """Register a callback invoked after every completed cycle."""
        self._answer_listeners.append(listener)

    async def run(self) -> None:
        """Poll the hotkey and run a cycle on every press.

        Returns when stop() is called or the driver asks to exit.
        """
        if self._running:
            logger.warning("Orchestrator is already running")
            return

        self._running = True
        self._stop_requested = False
        self._status.is_running = True
        self._edge = HotkeyEdgeDetector()
        self._set_state(OrchestratorState.WAITING_FOR_HOTKEY)
        logger.info("Orchestrator started, waiting for hotkey")

        try:
            while self._running:
                if self._edge.update(self.poll_key_state()):
                    result = await self.handle_cycle()
                    if result.exit_requested:
                        break
                await asyncio.sleep(self.poll_interval)
        finally:
            self._running = False
            self._status.is_running = False
            logger.info("Orchestrator stopped")

    def stop(self) -> None:
        """Ask the run loop to stop at its next poll."""
        if self._running:
            logger.info("Stop requested")
        self._stop_requested = True
        self._running = False

    async def handle_cycle(self) -> CycleResult:
        """Run one complete interaction.

        Errors inside the cycle are logged and answered with an apology;
        they never propagate.
        """
        result = CycleResult()
        self._status.last_cycle_time = time.time()
        self._status.error = None

        try:
            self._set_state(OrchestratorState.CAPTURING)
            text = await self._capture_with_retry()
            result.recognized_text = text

            if not text:
                if self._stop_requested:
                    logger.info("Stopped during capture, ending cycle")
                    return result
                logger.info("No speech recognized, ending cycle")
                await self._respond(result, self.phrases.no_speech)
                return result

            self._set_state(OrchestratorState.PROCESSING)
            self._status.last_text = text
            result.intent = self.classifier.classify(text)
            logger.info(f"Recognized {text!r} as {result.intent.value}")

            if result.intent is Intent.EXIT:
                self._set_state(OrchestratorState.EXITING)
                self._running = False
                return result

            if result.intent is Intent.NAVIGATION:
                reply = await self.answer_navigation()
            else:
                reply = self.phrases.not_understood

            await self._respond(result, reply)

        except Exception as e:
            logger.error(f"Error processing interaction: {e}", exc_info=True)
            self._status.error = str(e)
            result.failed = True
            try:
                await self._respond(result, self.phrases.error)
            except Exception as speak_error:
                logger.error(f"Could not speak error reply: {speak_error}")

        finally:
            if self._status.state is not OrchestratorState.EXITING:
                self._set_state(OrchestratorState.WAITING_FOR_HOTKEY)
            self._status.total_cycles += 1
            self._notify(result)

        return result

    async def _capture_with_retry(self) -> str:
        """Prompt and capture, asking once more if nothing was heard."""
        for attempt in range(self.max_capture_attempts):
            if attempt > 0:
                await self.speaker.speak(self.phrases.repeat)

            # The capture window is fixed; it does not wait for the prompt
            _, text = await asyncio.gather(
                self.speaker.speak(self.phrases.prompt),
                self.recognizer.capture(self.capture_seconds),
            )
            logger.debug(f"Capture attempt {attempt + 1}/{self.max_capture_attempts} done")

            text = (text or "").strip()
            if text:
                return text

            if self._stop_requested:
                break

        return ""

    async def answer_navigation(self) -> str:
        """Refresh the session from telemetry and answer a ferry question."""
        self.session = self.session_source.snapshot()
        return await self.resolve_navigation(self.session)

    async def resolve_navigation(self, state: SessionState) -> str:
        """Choose the reply for a navigation question.

        The first matching condition wins:
        telemetry never received, no job, missing cities, then route lookup.
        """
        if not state.telemetry_received:
            return self.phrases.telemetry_unavailable

        if not state.job_active:
            return self.phrases.no_job

        if not state.city_source or not state.city_destination:
            return self.phrases.no_ferry

        # Route lookup may block on the database
        route = await asyncio.to_thread(
            self.routes.get_route, state.city_source, state.city_destination
        )
        if route is None:
            logger.info(f"No ferry for {state.city_source} -> {state.city_destination}")
            return self.phrases.no_ferry

        return self.phrases.route_reply(route.boarding_port, route.landing_port)

    async def _respond(self, result: CycleResult, reply: str) -> None:
        self._set_state(OrchestratorState.RESPONDING)
        result.reply = reply
        await self.speaker.speak(reply)

    def _set_state(self, state: OrchestratorState) -> None:
        self._status.state = state

    def _notify(self, result: CycleResult) -> None:
        for listener in list(self._answer_listeners):
            try:
                listener(result)
            except Exception as e:
                logger.error(f"Answer listener failed: {e}", exc_info=True)

    @property
    def state(self) -> OrchestratorState:
        """Current orchestrator state."""
        return self._status.state

    @property
    def status(self) -> dict[str, Any]:
        """Get orchestrator status for monitoring.

        Returns:
            Dictionary with status information.
        """
        return {
            "state": self._status.state.value,
            "running": self._status.is_running,
            "total_cycles": self._status.total_cycles,
            "last_cycle_time": self._status.last_cycle_time,
            "last_text": self._status.last_text,
            "error": self._status.error,
            "job_active": self.session_source.snapshot().job_active,
        }

    @property
    def is_running(self) -> bool:
        """Check if the run loop is active."""
        return self._running
