"""Fixed-delay retry policy shared by engine startup and speech synthesis."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ferry_assist.exceptions import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry an async operation with a fixed delay between attempts.

    The policy is bounded by ``max_attempts``, by ``timeout`` seconds of
    elapsed time, or both. At least one attempt is always made.

    Example:
        >>> policy = RetryPolicy(max_attempts=3, delay=1.0)
        >>> audio = await policy.run(fetch_audio, description="synthesis")
    """

    max_attempts: int | None = 3
    delay: float = 1.0
    timeout: float | None = None
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts is None and self.timeout is None:
            raise ValueError("RetryPolicy needs max_attempts or timeout")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        is_success: Callable[[T], bool] = bool,
        description: str = "operation",
    ) -> T:
        """Run ``operation`` until ``is_success`` accepts its result.

        Args:
            operation: Zero-argument coroutine function, called once per attempt.
            is_success: Predicate on the result. Defaults to truthiness.
            description: Label used in log lines and in the raised error.

        Returns:
            The first result accepted by ``is_success``.

        Raises:
            RetryExhausted: If every attempt failed.
            Exception: Any exception not listed in ``retry_on``.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        attempt = 0
        last_error: BaseException | None = None

        while True:
            attempt += 1
            try:
                result = await operation()
            except self.retry_on as e:
                last_error = e
                logger.warning(
                    f"{description} failed (attempt {attempt}"
                    f"{f'/{self.max_attempts}' if self.max_attempts else ''}): {e}"
                )
            else:
                if is_success(result):
                    return result
                logger.debug(f"{description} not ready (attempt {attempt})")

            if self.max_attempts is not None and attempt >= self.max_attempts:
                break
            if self.timeout is not None and loop.time() - started + self.delay > self.timeout:
                break

            await asyncio.sleep(self.delay)

        raise RetryExhausted(description, attempt, last_error)
