"""Text-to-speech through the VOICEVOX engine.

Owns the engine process lifecycle and its HTTP protocol:

    GET  /version                          health probe
    POST /audio_query?text=...&speaker=N   synthesis parameters (JSON)
    POST /synthesis?speaker=N              WAV audio for those parameters

Only one utterance is synthesized and played at a time.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import httpx

from ferry_assist.config import EngineConfig
from ferry_assist.exceptions import EngineLaunchFailed, EngineTimeout, RetryExhausted
from ferry_assist.retry import RetryPolicy

from .playback import play_wav

logger = logging.getLogger(__name__)

# Speech synthesis retry settings
MAX_SPEAK_ATTEMPTS = 3
SPEAK_RETRY_DELAY = 1.0

# How long to wait for the engine process to die on shutdown
SHUTDOWN_WAIT_SECONDS = 3.0


class SynthesisGateway:
    """
    Speak text through a VOICEVOX engine.

    Starts the engine if it is not already running, serializes utterances
    behind a single lock, and retries failed synthesis. Speech failures are
    logged and reported as False, never raised.
    """

    def __init__(
        self,
        config: EngineConfig,
        player: Callable[[bytes], None] | None = None,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = MAX_SPEAK_ATTEMPTS,
        retry_delay: float = SPEAK_RETRY_DELAY,
    ) -> None:
        """Initialize the gateway.

        Args:
            config: Engine path, endpoint, speaker and timeout settings.
            player: Blocking callable that plays WAV bytes to completion.
            client: Optional HTTP client (for testing).
            max_attempts: Total attempts per utterance.
            retry_delay: Seconds to wait between attempts.
        """
        self.config = config
        self._player = player or play_wav
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
        )
        self._speak_policy = RetryPolicy(max_attempts=max_attempts, delay=retry_delay)

        # One utterance at a time, process-wide
        self._lock = asyncio.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tts_")

        self._process: asyncio.subprocess.Process | None = None
        self._is_speaking = False
        self._closed = False

        logger.debug(
            f"SynthesisGateway initialized with base_url='{config.base_url}', "
            f"speaker_id={config.speaker_id}"
        )

    async def is_engine_available(self) -> bool:
        """Probe ``GET /version``; any 2xx status means the engine is ready."""
        try:
            response = await self._client.get("/version")
            return response.is_success
        except httpx.HTTPError as e:
            logger.debug(f"VOICEVOX health probe failed: {e}")
            return False

    async def start_engine(self) -> None:
        """Make sure the VOICEVOX engine is running and answering.

        Raises:
            ConfigurationError: If the executable path is missing or invalid.
            EngineLaunchFailed: If the process cannot be started or exits early.
            EngineTimeout: If the engine is not ready within the timeout.
        """
        path = self.config.validate_executable()

        if await self.is_engine_available():
            logger.info("Connected to running VOICEVOX engine")
            return

        logger.info(f"Starting VOICEVOX engine: {path}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise EngineLaunchFailed(f"Failed to start VOICEVOX: {e}") from e

        async def _probe() -> bool:
            process = self._process
            if process is not None and process.returncode is not None:
                raise EngineLaunchFailed(
                    f"VOICEVOX exited with code {process.returncode} during startup"
                )
            return await self.is_engine_available()

        # Probe failures are reported as False, so nothing needs catching here
        policy = RetryPolicy(
            max_attempts=None,
            delay=self.config.poll_interval,
            timeout=self.config.timeout_seconds,
            retry_on=(),
        )

        try:
            await policy.run(_probe, description="VOICEVOX health probe")
        except RetryExhausted as e:
            await self._terminate_process()
            raise EngineTimeout(
                f"VOICEVOX was not ready within {self.config.timeout_seconds:g}s",
                timeout=self.config.timeout_seconds,
            ) from e
        except EngineLaunchFailed:
            await self._terminate_process()
            raise

        logger.info(f"VOICEVOX engine ready (PID: {self._process.pid})")

    async def speak(self, text: str, speaker_id: int | None = None) -> bool:
        """Synthesize and play text, blocking until playback finishes.

        Args:
            text: Sentence to speak.
            speaker_id: Override the configured VOICEVOX speaker.

        Returns:
            True if the text was played, False if it was empty or every
            attempt failed.
        """
        if not text or not text.strip():
            logger.debug("Empty text, skipping TTS")
            return False

        if self._closed:
            logger.warning(f"Gateway is shut down, not speaking: {text[:50]}")
            return False

        speaker = self.config.speaker_id if speaker_id is None else speaker_id
        logger.info(f"Speaking: {text[:100]}{'...' if len(text) > 100 else ''}")

        async def _attempt() -> bool:
            async with self._lock:
                self._is_speaking = True
                try:
                    audio = await self._synthesize(text, speaker)
                    await self._play(audio)
                finally:
                    self._is_speaking = False
            return True

        try:
            await self._speak_policy.run(_attempt, description="Speech synthesis")
        except RetryExhausted as e:
            logger.error(f"Giving up on speech: {e}")
            return False

        return True

    async def _synthesize(self, text: str, speaker: int) -> bytes:
        """Run the two-step VOICEVOX synthesis and return WAV bytes."""
        query_response = await self._client.post(
            "/audio_query",
            params={"text": text, "speaker": speaker},
        )
        query_response.raise_for_status()

        synthesis_response = await self._client.post(
            "/synthesis",
            params={"speaker": speaker},
            content=query_response.content,
            headers={"Content-Type": "application/json"},
        )
        synthesis_response.raise_for_status()

        return synthesis_response.content

    async def _play(self, audio: bytes) -> None:
        """Play audio in the worker thread and wait for it to finish."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._player, audio)

    async def _terminate_process(self) -> None:
        """Kill the engine process we started, if it is still running."""
        process = self._process
        self._process = None

        if process is None or process.returncode is not None:
            return

        try:
            process.kill()
            await asyncio.wait_for(process.wait(), timeout=SHUTDOWN_WAIT_SECONDS)
            logger.info("VOICEVOX engine stopped")
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            logger.warning(f"VOICEVOX (PID: {process.pid}) did not exit after kill")

    async def shutdown(self) -> None:
        """Stop the engine we own and release the HTTP client.

        An utterance that is already playing is allowed to finish.
        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        async with self._lock:
            await self._terminate_process()
            await self._client.aclose()

        self._executor.shutdown(wait=False)
        logger.debug("SynthesisGateway shutdown complete")

    @property
    def is_speaking(self) -> bool:
        """Check if an utterance is being synthesized or played."""
        return self._is_speaking

    @property
    def owns_engine(self) -> bool:
        """Check if the gateway launched the engine process itself."""
        return self._process is not None
