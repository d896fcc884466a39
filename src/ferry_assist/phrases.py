"""Spoken sentences and intent keywords, per language."""

from __future__ import annotations

from dataclasses import dataclass, replace

from ferry_assist.config import IntentConfig, Language


@dataclass(frozen=True)
class PhraseBook:
    """Everything the assistant says, plus the words it listens for."""

    startup: str
    farewell: str
    prompt: str
    repeat: str
    no_speech: str
    not_understood: str
    error: str
    telemetry_unavailable: str
    no_job: str
    no_ferry: str
    route_template: str
    exit_keywords: tuple[str, ...]
    navigation_keywords: tuple[str, ...]

    def route_reply(self, boarding_port: str, landing_port: str) -> str:
        """Format the boarding instruction for a found route."""
        return self.route_template.format(
            boarding_port=boarding_port,
            landing_port=landing_port,
        )


JAPANESE = PhraseBook(
    startup="フェリー乗船サポートツールを起動しました。",
    farewell="システムを終了します",
    prompt="どうぞ",
    repeat="もう一度お願いします",
    no_speech="申し訳ありません。もう一度キーを押して話しかけてください",
    not_understood="申し訳ありません。聞き取れませんでした。",
    error="エラーが発生しました。もう一度お試しください",
    telemetry_unavailable="配送情報が取得できていません",
    no_job="現在お仕事を請け負っていません",
    no_ferry="この区間にフェリーはありません",
    route_template="{boarding_port}から{landing_port}行きのフェリーに乗船してください",
    exit_keywords=("終了", "終わり", "おわり"),
    navigation_keywords=(
        "どこ", "どっち", "フェリー", "方面",
        "行き", "いき", "行く", "いく", "から",
    ),
)

ENGLISH = PhraseBook(
    startup="Ferry assist is ready.",
    farewell="Shutting down.",
    prompt="Go ahead.",
    repeat="Please say that again.",
    no_speech="Sorry, I didn't hear anything. Press the key and try again.",
    not_understood="Sorry, I didn't understand.",
    error="Something went wrong. Please try again.",
    telemetry_unavailable="Delivery information is not available yet.",
    no_job="No job is currently being carried.",
    no_ferry="There is no ferry on this route.",
    route_template="Board at {boarding_port} and take the ferry toward {landing_port}.",
    exit_keywords=("exit", "quit", "goodbye", "shut down"),
    navigation_keywords=(
        "where", "which way", "ferry", "destination", "direction", "heading",
    ),
)

PHRASE_BOOKS: dict[Language, PhraseBook] = {
    Language.JA: JAPANESE,
    Language.EN: ENGLISH,
}


def get_phrase_book(config: IntentConfig | None = None) -> PhraseBook:
    """Return the phrase book for the configured language.

    Keyword lists set in the config replace the built-in ones.
    """
    config = config or IntentConfig()
    book = PHRASE_BOOKS[config.language]

    overrides: dict[str, tuple[str, ...]] = {}
    if config.exit_keywords:
        overrides["exit_keywords"] = tuple(config.exit_keywords)
    if config.navigation_keywords:
        overrides["navigation_keywords"] = tuple(config.navigation_keywords)

    if not overrides:
        return book

    return replace(book, **overrides)
