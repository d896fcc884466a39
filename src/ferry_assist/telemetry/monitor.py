"""Job state derived from the game telemetry stream.

Ticks arrive on the feed's own thread. Each tick produces a new immutable
SessionState that replaces the previous one in a single reference swap, so
readers never see the source city updated without the destination.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from threading import Lock
from typing import Callable

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    """Whether a delivery job is in progress."""

    IDLE = "idle"
    JOB_ACTIVE = "job_active"


class TelemetryEvent(str, Enum):
    """Notifications emitted while processing ticks."""

    JOB_STARTED = "job_started"
    JOB_ENDED = "job_ended"
    JOB_INFO_CHANGED = "job_info_changed"


@dataclass(frozen=True)
class TelemetryTick:
    """One update from the game: is cargo loaded, and where is it going."""

    cargo_loaded: bool
    city_source: str = ""
    city_destination: str = ""


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the telemetry-derived session fields."""

    telemetry_received: bool = False
    job_active: bool = False
    city_source: str = ""
    city_destination: str = ""
    last_cargo_loaded: bool = False

    @property
    def job_state(self) -> JobState:
        """Current job state."""
        return JobState.JOB_ACTIVE if self.job_active else JobState.IDLE


TelemetryListener = Callable[[TelemetryEvent, SessionState], None]


class TelemetryMonitor:
    """
    Turn telemetry ticks into job transitions.

    The monitor is the only writer of SessionState; readers call
    snapshot(). Duplicate ticks leave the state untouched and emit nothing.
    """

    def __init__(self) -> None:
        self._state = SessionState()
        self._write_lock = Lock()
        self._listeners: list[TelemetryListener] = []

    def snapshot(self) -> SessionState:
        """Return the latest published state."""
        return self._state

    @property
    def job_state(self) -> JobState:
        """Current job state."""
        return self._state.job_state

    def add_listener(self, listener: TelemetryListener) -> None:
        """Register a callback for job notifications."""
        self._listeners.append(listener)

    def on_tick(self, tick: TelemetryTick) -> list[TelemetryEvent]:
        """Process one tick and publish the resulting state.

        Args:
            tick: Latest telemetry values.

        Returns:
            Notifications produced by this tick (possibly empty).
        """
        with self._write_lock:
            previous = self._state
            state, events = self._next_state(previous, tick)
            if state != previous:
                self._state = state

        for event in events:
            self._log_event(event, state)
            self._notify(event, state)

        return events

    @staticmethod
    def _next_state(
        previous: SessionState,
        tick: TelemetryTick,
    ) -> tuple[SessionState, list[TelemetryEvent]]:
        state = replace(
            previous,
            telemetry_received=True,
            last_cargo_loaded=tick.cargo_loaded,
        )

        if not previous.job_active:
            if tick.cargo_loaded:
                state = replace(
                    state,
                    job_active=True,
                    city_source=tick.city_source,
                    city_destination=tick.city_destination,
                )
                return state, [TelemetryEvent.JOB_STARTED]
            return state, []

        if not tick.cargo_loaded:
            state = replace(state, job_active=False, city_source="", city_destination="")
            return state, [TelemetryEvent.JOB_ENDED]

        if (tick.city_source, tick.city_destination) != (
            previous.city_source,
            previous.city_destination,
        ):
            state = replace(
                state,
                city_source=tick.city_source,
                city_destination=tick.city_destination,
            )
            return state, [TelemetryEvent.JOB_INFO_CHANGED]

        return state, []

    @staticmethod
    def _log_event(event: TelemetryEvent, state: SessionState) -> None:
        if event is TelemetryEvent.JOB_STARTED:
            logger.info(f"Job started: {state.city_source} -> {state.city_destination}")
        elif event is TelemetryEvent.JOB_ENDED:
            logger.info("Job ended")
        else:
            logger.info(f"Job info changed: {state.city_source} -> {state.city_destination}")

    def _notify(self, event: TelemetryEvent, state: SessionState) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, state)
            except Exception as e:
                logger.error(f"Telemetry listener failed on {event.value}: {e}", exc_info=True)
