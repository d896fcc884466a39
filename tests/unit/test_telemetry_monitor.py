"""Unit tests for the telemetry job monitor."""

from __future__ import annotations

import threading

from ferry_assist.telemetry.monitor import (
    JobState,
    SessionState,
    TelemetryEvent,
    TelemetryMonitor,
    TelemetryTick,
)


def loaded(source: str = "Calais", destination: str = "Dover") -> TelemetryTick:
    return TelemetryTick(cargo_loaded=True, city_source=source, city_destination=destination)


EMPTY = TelemetryTick(cargo_loaded=False)


class TestSessionState:
    """Tests for SessionState."""

    def test_default_values(self) -> None:
        """Test SessionState default values."""
        state = SessionState()
        assert state.telemetry_received is False
        assert state.job_active is False
        assert state.city_source == ""
        assert state.city_destination == ""
        assert state.job_state is JobState.IDLE


class TestTelemetryMonitor:
    """Tests for TelemetryMonitor transitions."""

    def test_initial_state(self, monitor: TelemetryMonitor) -> None:
        """Test a fresh monitor has received nothing."""
        assert monitor.snapshot() == SessionState()
        assert monitor.job_state is JobState.IDLE

    def test_idle_tick_marks_telemetry_received(self, monitor: TelemetryMonitor) -> None:
        """Test any tick sets telemetry_received without starting a job."""
        events = monitor.on_tick(EMPTY)
        assert events == []
        assert monitor.snapshot().telemetry_received is True
        assert monitor.job_state is JobState.IDLE

    def test_job_start(self, monitor: TelemetryMonitor) -> None:
        """Test cargo loading starts a job with its cities."""
        events = monitor.on_tick(loaded())

        assert events == [TelemetryEvent.JOB_STARTED]
        state = monitor.snapshot()
        assert state.job_active is True
        assert (state.city_source, state.city_destination) == ("Calais", "Dover")

    def test_job_end_clears_cities(self, monitor: TelemetryMonitor) -> None:
        """Test unloading ends the job and clears both cities."""
        monitor.on_tick(loaded())
        events = monitor.on_tick(EMPTY)

        assert events == [TelemetryEvent.JOB_ENDED]
        state = monitor.snapshot()
        assert state.job_active is False
        assert state.city_source == ""
        assert state.city_destination == ""

    def test_job_info_changed(self, monitor: TelemetryMonitor) -> None:
        """Test a city change during a job is reported."""
        monitor.on_tick(loaded())
        events = monitor.on_tick(loaded(destination="Folkestone"))

        assert events == [TelemetryEvent.JOB_INFO_CHANGED]
        assert monitor.snapshot().city_destination == "Folkestone"
        assert monitor.job_state is JobState.JOB_ACTIVE

    def test_duplicate_ticks_emit_nothing(self, monitor: TelemetryMonitor) -> None:
        """Test repeating the same tick changes nothing."""
        monitor.on_tick(loaded())
        before = monitor.snapshot()

        assert monitor.on_tick(loaded()) == []
        assert monitor.snapshot() is before

    def test_full_sequence(self, monitor: TelemetryMonitor) -> None:
        """Test start, change, repeat, end in order."""
        ticks = [
            EMPTY,
            loaded("A", "B"),
            loaded("A", "B"),
            loaded("A", "C"),
            EMPTY,
            EMPTY,
            loaded("D", "E"),
        ]
        events = [event for tick in ticks for event in monitor.on_tick(tick)]

        assert events == [
            TelemetryEvent.JOB_STARTED,
            TelemetryEvent.JOB_INFO_CHANGED,
            TelemetryEvent.JOB_ENDED,
            TelemetryEvent.JOB_STARTED,
        ]
        assert monitor.snapshot().city_source == "D"

    def test_listeners_receive_events(self, monitor: TelemetryMonitor) -> None:
        """Test listeners get each event with the new state."""
        received: list[tuple[TelemetryEvent, SessionState]] = []
        monitor.add_listener(lambda event, state: received.append((event, state)))

        monitor.on_tick(loaded())

        assert len(received) == 1
        event, state = received[0]
        assert event is TelemetryEvent.JOB_STARTED
        assert state.job_active is True

    def test_failing_listener_is_contained(self, monitor: TelemetryMonitor) -> None:
        """Test a listener exception does not break processing."""
        def broken(event: TelemetryEvent, state: SessionState) -> None:
            raise RuntimeError("listener failed")

        calls: list[TelemetryEvent] = []
        monitor.add_listener(broken)
        monitor.add_listener(lambda event, state: calls.append(event))

        assert monitor.on_tick(loaded()) == [TelemetryEvent.JOB_STARTED]
        assert calls == [TelemetryEvent.JOB_STARTED]

    def test_snapshots_are_never_torn(self, monitor: TelemetryMonitor) -> None:
        """Test readers always see a matching city pair."""
        pairs = [("A", "A"), ("B", "B"), ("C", "C")]
        stop = threading.Event()
        torn: list[SessionState] = []

        def read() -> None:
            while not stop.is_set():
                state = monitor.snapshot()
                if state.city_source != state.city_destination:
                    torn.append(state)

        reader = threading.Thread(target=read)
        reader.start()
        try:
            for _ in range(500):
                for source, destination in pairs:
                    monitor.on_tick(loaded(source, destination))
        finally:
            stop.set()
            reader.join()

        assert torn == []
