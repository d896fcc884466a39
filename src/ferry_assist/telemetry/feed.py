"""HTTP telemetry feed.

Polls the JSON document served by an ETS2/ATS telemetry server on a
background thread and pushes ticks to a subscriber.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

import httpx

from ferry_assist.config import TelemetryConfig

from .monitor import TelemetryTick

logger = logging.getLogger(__name__)

_MISSING = object()


def lookup_path(document: Any, path: str, default: Any = _MISSING) -> Any:
    """Follow a dotted path (``job.sourceCity``) into nested dicts.

    Raises:
        KeyError: If the path is absent and no default is given.
    """
    node = document
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            if default is _MISSING:
                raise KeyError(path)
            return default
        node = node[part]
    return node


class HttpTelemetryFeed:
    """
    Poll a telemetry endpoint and deliver ticks to a callback.

    Ticks are delivered on the feed's own thread. Payloads reporting a
    disconnected game are dropped, so the subscriber only ever sees data
    from a running game.
    """

    def __init__(
        self,
        config: TelemetryConfig,
        on_tick: Callable[[TelemetryTick], Any],
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the feed.

        Args:
            config: Telemetry endpoint and field mapping.
            on_tick: Called with each tick parsed from the endpoint.
            client: Optional HTTP client (for testing).
        """
        self.config = config
        self._on_tick = on_tick
        self._client = client or httpx.Client(timeout=config.request_timeout)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def parse(self, payload: dict[str, Any]) -> TelemetryTick | None:
        """Map a telemetry document to a tick.

        Returns:
            The tick, or None if the game is not connected.
        """
        if self.config.connected_field:
            connected = lookup_path(payload, self.config.connected_field, default=True)
            if not connected:
                return None

        return TelemetryTick(
            cargo_loaded=bool(lookup_path(payload, self.config.cargo_loaded_field)),
            city_source=str(lookup_path(payload, self.config.city_source_field, default="") or ""),
            city_destination=str(
                lookup_path(payload, self.config.city_destination_field, default="") or ""
            ),
        )

    def poll_once(self) -> TelemetryTick | None:
        """Fetch the endpoint once and deliver the tick, if any.

        Returns:
            The delivered tick, or None if nothing was delivered.
        """
        try:
            response = self._client.get(self.config.url)
            response.raise_for_status()
            tick = self.parse(response.json())
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.debug(f"Telemetry poll failed: {e}")
            return None

        if tick is None:
            return None

        try:
            self._on_tick(tick)
        except Exception as e:
            logger.error(f"Telemetry tick processing failed: {e}", exc_info=True)
        return tick

    def _run(self) -> None:
        logger.debug(f"Telemetry feed polling {self.config.url}")
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.config.poll_interval)

    def start(self) -> None:
        """Start polling on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Telemetry feed is already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="telemetry_feed", daemon=True)
        self._thread.start()
        logger.info(f"Telemetry feed started ({self.config.url})")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop polling and close the HTTP client."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._client.close()
        logger.debug("Telemetry feed stopped")

    @property
    def is_running(self) -> bool:
        """Check if the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()
