"""Keyword-based intent classification for recognized speech."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from ferry_assist.phrases import PhraseBook

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """What the driver asked for."""

    EXIT = "exit"
    NAVIGATION = "navigation"
    UNKNOWN = "unknown"


class IntentClassifier:
    """
    Classify recognized text by substring keyword matching.

    Exit keywords take precedence over navigation keywords. Matching is
    case-insensitive and ignores surrounding words.
    """

    def __init__(
        self,
        exit_keywords: Iterable[str],
        navigation_keywords: Iterable[str],
    ) -> None:
        self.exit_keywords = tuple(k.casefold() for k in exit_keywords if k.strip())
        self.navigation_keywords = tuple(
            k.casefold() for k in navigation_keywords if k.strip()
        )

    @classmethod
    def from_phrase_book(cls, phrases: PhraseBook) -> "IntentClassifier":
        """Build a classifier from a phrase book's keyword sets."""
        return cls(phrases.exit_keywords, phrases.navigation_keywords)

    def classify(self, text: str) -> Intent:
        """Classify a transcript.

        Args:
            text: Recognized speech.

        Returns:
            The matching intent, UNKNOWN if no keyword matches.
        """
        normalized = text.casefold()

        if any(keyword in normalized for keyword in self.exit_keywords):
            return Intent.EXIT

        if any(keyword in normalized for keyword in self.navigation_keywords):
            return Intent.NAVIGATION

        logger.debug(f"No intent keyword in: {text!r}")
        return Intent.UNKNOWN
