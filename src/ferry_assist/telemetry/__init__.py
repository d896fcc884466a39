"""Game telemetry: job state monitor and the HTTP feed that drives it."""

from ferry_assist.telemetry.feed import HttpTelemetryFeed
from ferry_assist.telemetry.monitor import (
    JobState,
    SessionState,
    TelemetryEvent,
    TelemetryMonitor,
    TelemetryTick,
)

__all__ = [
    "HttpTelemetryFeed",
    "JobState",
    "SessionState",
    "TelemetryEvent",
    "TelemetryMonitor",
    "TelemetryTick",
]
