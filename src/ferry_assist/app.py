"""Application assembly and lifecycle.

Wires configuration into the synthesis gateway, recognizer, telemetry feed,
route resolver, hotkey poller and orchestrator, and tears them down again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, TypeVar

from rich.console import Console

from ferry_assist.config import FerryConfig
from ferry_assist.exceptions import ConfigurationError, EngineError, RetryExhausted
from ferry_assist.intents import IntentClassifier
from ferry_assist.orchestrator import InteractionOrchestrator
from ferry_assist.phrases import PhraseBook, get_phrase_book
from ferry_assist.retry import RetryPolicy
from ferry_assist.routes import RouteResolver, RouteStore
from ferry_assist.telemetry import HttpTelemetryFeed, TelemetryMonitor
from ferry_assist.voice.hotkey import KeyStatePoller
from ferry_assist.voice.recognition import SpeechRecognizer
from ferry_assist.voice.synthesis import SynthesisGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Engine startup attempts before giving up
MAX_STARTUP_ATTEMPTS = 3
STARTUP_RETRY_DELAY = 1.0

# How often a long startup step checks for a stop request
STOP_CHECK_INTERVAL = 0.1


class FerryAssistApp:
    """Handles initialization, running, and shutdown of all components."""

    def __init__(
        self,
        config: FerryConfig,
        console: Console | None = None,
        gateway: SynthesisGateway | None = None,
        recognizer: SpeechRecognizer | None = None,
        key_poller: KeyStatePoller | None = None,
        startup_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the application.

        Args:
            config: Ferry Assist configuration.
            console: Rich console for user-facing output.
            gateway: Optional synthesis gateway (for testing).
            recognizer: Optional speech recognizer (for testing).
            key_poller: Optional hotkey poller (for testing).
            startup_policy: Retry policy for bringing the engine up.
        """
        self.config = config
        self.console = console or Console()
        self.phrases: PhraseBook = get_phrase_book(config.intents)

        self.gateway = gateway
        self.recognizer = recognizer
        self.key_poller = key_poller
        self.startup_policy = startup_policy or RetryPolicy(
            max_attempts=MAX_STARTUP_ATTEMPTS,
            delay=STARTUP_RETRY_DELAY,
            retry_on=(EngineError,),
        )

        self.store = RouteStore(config.database_path)
        self.resolver = RouteResolver(self.store)
        self.monitor = TelemetryMonitor()
        self.feed: HttpTelemetryFeed | None = None
        self.orchestrator: InteractionOrchestrator | None = None
        self._shut_down = False
        self._stop_requested = False

    async def initialize(self) -> InteractionOrchestrator | None:
        """Bring every component up.

        A stop requested while starting abandons the remaining steps.

        Returns:
            The ready orchestrator, or None if startup was stopped.

        Raises:
            ConfigurationError: If the engine path, database or hotkey is invalid.
            EngineError: If the engine could not be started after retries.
        """
        self.console.print(f"[bold cyan]Initializing {self.config.name}...[/bold cyan]")

        # 1. Route database (required)
        self.store.open()
        self.console.print(f"[green]✓[/green] Route database: {self.store.db_path}")
        if self._stop_requested:
            return self._startup_stopped()

        # 2. VOICEVOX engine
        if self.gateway is None:
            self.gateway = SynthesisGateway(self.config.engine)
        await self._unless_stopped(self._start_engine())
        if self._stop_requested:
            return self._startup_stopped()
        self.console.print("[green]✓[/green] VOICEVOX engine ready")

        # 3. Speech recognition
        if self.recognizer is None:
            self.recognizer = SpeechRecognizer(
                model_size=self.config.recognition.model,
                language=self.config.intents.language.value,
                device=self.config.recognition.device,
                compute_type=self.config.recognition.compute_type,
                input_device=self.config.recognition.input_device,
                capture_seconds=self.config.recognition.capture_seconds,
                on_partial=self._show_partial if self.config.debug else None,
            )
        await self._unless_stopped(self.recognizer.warmup())
        if self._stop_requested:
            return self._startup_stopped()
        self.console.print("[green]✓[/green] Speech recognition ready")

        # 4. Telemetry
        if self.config.telemetry.enabled:
            self.feed = HttpTelemetryFeed(self.config.telemetry, on_tick=self.monitor.on_tick)
            self.feed.start()
            self.console.print("[green]✓[/green] Telemetry feed started")
        else:
            self.console.print("[dim]Telemetry disabled[/dim]")

        # 5. Hotkey
        if self.key_poller is None:
            self.key_poller = KeyStatePoller(self.config.hotkey.key)
        self.key_poller.start()

        # 6. Orchestrator
        self.orchestrator = InteractionOrchestrator(
            speaker=self.gateway,
            recognizer=self.recognizer,
            session_source=self.monitor,
            routes=self.resolver,
            poll_key_state=self.key_poller.is_pressed,
            phrases=self.phrases,
            classifier=IntentClassifier.from_phrase_book(self.phrases),
            capture_seconds=self.config.recognition.capture_seconds,
            poll_interval=self.config.hotkey.poll_interval,
        )

        self.console.print()
        self.console.print(
            f"[green]{self.config.name} is ready![/green] "
            f"Press [bold]{self.config.hotkey.key}[/bold] and ask about your ferry."
        )
        return self.orchestrator

    async def _start_engine(self) -> None:
        """Start the engine, retrying launch and timeout failures."""
        assert self.gateway is not None
        try:
            await self.startup_policy.run(
                self._start_engine_once,
                description="VOICEVOX startup",
            )
        except RetryExhausted as e:
            if isinstance(e.last_error, EngineError):
                raise e.last_error from e
            raise EngineError(str(e)) from e

    async def _start_engine_once(self) -> bool:
        assert self.gateway is not None
        await self.gateway.start_engine()
        return True

    async def _unless_stopped(self, awaitable: Awaitable[T]) -> T | None:
        """Await a startup step, cancelling it if a stop is requested."""
        task = asyncio.ensure_future(awaitable)
        while not task.done():
            if self._stop_requested:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                return None
            await asyncio.wait({task}, timeout=STOP_CHECK_INTERVAL)
        return task.result()

    def _startup_stopped(self) -> None:
        logger.info("Startup stopped before the assistant was ready")
        self.console.print("[yellow]Startup cancelled[/yellow]")

    def _show_partial(self, text: str) -> None:
        self.console.print(f"[dim]Recognizing: {text}[/dim]")

    async def run(self) -> None:
        """Announce startup, run conversations until exit, then say goodbye.

        Returns at once if a stop was requested before the loop started.
        """
        if self._stop_requested:
            logger.info("Stop requested before run, not starting")
            return

        if self.orchestrator is None or self.gateway is None:
            raise RuntimeError("FerryAssistApp not initialized. Call initialize() first.")

        await self.gateway.speak(self.phrases.startup)
        try:
            if not self._stop_requested:
                await self.orchestrator.run()
        finally:
            await self.gateway.speak(self.phrases.farewell)

    def stop(self) -> None:
        """Stop startup or the running orchestrator.

        Safe to call from a signal handler at any point, including before
        initialize() has finished.
        """
        self._stop_requested = True
        if self.orchestrator is not None:
            self.orchestrator.stop()

    def add_answer_listener(self, listener: Callable) -> None:
        """Forward an answered-cycle listener to the orchestrator."""
        if self.orchestrator is None:
            raise RuntimeError("FerryAssistApp not initialized. Call initialize() first.")
        self.orchestrator.add_answer_listener(listener)

    async def shutdown(self) -> None:
        """Shutdown initialized components. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True

        self.stop()

        if self.key_poller is not None:
            self.key_poller.stop()

        if self.feed is not None:
            self.feed.stop()

        if self.recognizer is not None:
            await self.recognizer.cleanup()

        if self.gateway is not None:
            await self.gateway.shutdown()

        self.store.close()
        logger.info("Ferry Assist shut down")


def check_configuration(config: FerryConfig) -> list[str]:
    """Return human-readable problems with the configuration (empty if none)."""
    problems: list[str] = []

    try:
        config.engine.validate_executable()
    except ConfigurationError as e:
        problems.append(str(e))

    store = RouteStore(config.database_path)
    try:
        store.open()
    except ConfigurationError as e:
        problems.append(str(e))
    finally:
        store.close()

    return problems
