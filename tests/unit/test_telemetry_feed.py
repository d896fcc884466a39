"""Unit tests for the HTTP telemetry feed."""

from __future__ import annotations

import threading

import httpx
import pytest

from ferry_assist.config import TelemetryConfig
from ferry_assist.telemetry.feed import HttpTelemetryFeed, lookup_path
from ferry_assist.telemetry.monitor import TelemetryMonitor, TelemetryTick


def telemetry_payload(
    connected: bool = True,
    attached: bool = True,
    source: str = "Calais",
    destination: str = "Dover",
) -> dict:
    return {
        "game": {"connected": connected, "paused": False},
        "trailer": {"attached": attached},
        "job": {"sourceCity": source, "destinationCity": destination, "income": 1200},
    }


def make_feed(handler, on_tick=None, **config_kwargs) -> HttpTelemetryFeed:
    config = TelemetryConfig(url="http://telemetry.test/api/ets2/telemetry", **config_kwargs)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTelemetryFeed(config, on_tick=on_tick or (lambda tick: None), client=client)


class TestLookupPath:
    """Tests for lookup_path."""

    def test_nested_value(self) -> None:
        """Test following a dotted path."""
        assert lookup_path({"a": {"b": {"c": 3}}}, "a.b.c") == 3

    def test_missing_with_default(self) -> None:
        """Test a default is returned for a missing path."""
        assert lookup_path({"a": {}}, "a.b", default="x") == "x"

    def test_missing_without_default(self) -> None:
        """Test a missing path raises KeyError."""
        with pytest.raises(KeyError):
            lookup_path({"a": 1}, "a.b")


class TestHttpTelemetryFeed:
    """Tests for HttpTelemetryFeed."""

    def test_parse_connected(self) -> None:
        """Test a connected payload becomes a tick."""
        feed = make_feed(lambda request: httpx.Response(200, json={}))
        tick = feed.parse(telemetry_payload())
        assert tick == TelemetryTick(cargo_loaded=True, city_source="Calais", city_destination="Dover")

    def test_parse_disconnected(self) -> None:
        """Test a disconnected game yields no tick."""
        feed = make_feed(lambda request: httpx.Response(200, json={}))
        assert feed.parse(telemetry_payload(connected=False)) is None

    def test_parse_custom_fields(self) -> None:
        """Test field paths come from configuration."""
        feed = make_feed(
            lambda request: httpx.Response(200, json={}),
            connected_field="",
            cargo_loaded_field="cargo.loaded",
            city_source_field="cargo.from",
            city_destination_field="cargo.to",
        )
        tick = feed.parse({"cargo": {"loaded": 1, "from": "Kiel", "to": "Oslo"}})
        assert tick == TelemetryTick(cargo_loaded=True, city_source="Kiel", city_destination="Oslo")

    def test_parse_null_cities(self) -> None:
        """Test null city names become empty strings."""
        feed = make_feed(lambda request: httpx.Response(200, json={}))
        tick = feed.parse(telemetry_payload(attached=False, source=None, destination=None))
        assert tick == TelemetryTick(cargo_loaded=False)

    def test_poll_once_delivers_tick(self) -> None:
        """Test a successful poll hands the tick to the subscriber."""
        monitor = TelemetryMonitor()
        feed = make_feed(
            lambda request: httpx.Response(200, json=telemetry_payload()),
            on_tick=monitor.on_tick,
        )

        tick = feed.poll_once()

        assert tick is not None
        assert monitor.snapshot().job_active is True

    def test_poll_once_skips_disconnected(self) -> None:
        """Test disconnected payloads are not delivered."""
        received: list[TelemetryTick] = []
        feed = make_feed(
            lambda request: httpx.Response(200, json=telemetry_payload(connected=False)),
            on_tick=received.append,
        )

        assert feed.poll_once() is None
        assert received == []

    def test_poll_once_http_error(self) -> None:
        """Test server errors are swallowed and nothing is delivered."""
        received: list[TelemetryTick] = []
        feed = make_feed(lambda request: httpx.Response(503), on_tick=received.append)

        assert feed.poll_once() is None
        assert received == []

    def test_poll_once_connection_error(self) -> None:
        """Test an unreachable server is not fatal."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        feed = make_feed(handler)
        assert feed.poll_once() is None

    def test_poll_once_invalid_json(self) -> None:
        """Test a non-JSON body is ignored."""
        feed = make_feed(lambda request: httpx.Response(200, content=b"<html>"))
        assert feed.poll_once() is None

    def test_poll_once_missing_cargo_field(self) -> None:
        """Test a payload without the cargo field is ignored."""
        feed = make_feed(lambda request: httpx.Response(200, json={"game": {"connected": True}}))
        assert feed.poll_once() is None

    def test_subscriber_error_is_contained(self) -> None:
        """Test a failing subscriber does not break polling."""
        def on_tick(tick: TelemetryTick) -> None:
            raise RuntimeError("boom")

        feed = make_feed(lambda request: httpx.Response(200, json=telemetry_payload()), on_tick=on_tick)
        assert feed.poll_once() is not None

    def test_start_and_stop(self) -> None:
        """Test the background thread polls until stopped."""
        delivered = threading.Event()
        feed = make_feed(
            lambda request: httpx.Response(200, json=telemetry_payload()),
            on_tick=lambda tick: delivered.set(),
            poll_interval=0.01,
        )

        feed.start()
        try:
            assert feed.is_running
            assert delivered.wait(timeout=2.0)
        finally:
            feed.stop()

        assert not feed.is_running
