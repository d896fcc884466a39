"""Exception hierarchy for Ferry Assist."""

from __future__ import annotations


class FerryAssistError(Exception):
    """Base exception for all Ferry Assist errors."""


class ConfigurationError(FerryAssistError):
    """Missing or invalid configuration (engine path, database, hotkey)."""


class EngineError(FerryAssistError):
    """The external VOICEVOX engine could not be brought up."""


class EngineLaunchFailed(EngineError):
    """The engine process failed to start or exited during startup."""


class EngineTimeout(EngineError):
    """The engine did not answer its health probe within the timeout."""

    def __init__(self, message: str, *, timeout: float | None = None) -> None:
        self.timeout = timeout
        super().__init__(message)


class RetryExhausted(FerryAssistError):
    """A retried operation never succeeded."""

    def __init__(
        self,
        description: str,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        message = f"{description} failed after {attempts} attempt(s)"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
