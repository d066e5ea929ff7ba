"""Scope classification against the policy's Scope Phrase Set."""

from __future__ import annotations

from typing import Iterable

from visaplex.policy.definitions import ScopePhrase
from visaplex.utils.text import utf8_safe


class ScopeClassifier:
    """Decides whether a (redacted) question is within the declared topic.

    A question is in scope when at least one phrase matches anywhere in the
    text, case-insensitively. Pure and deterministic; holds no per-request state.
    """

    def __init__(self, phrases: Iterable[ScopePhrase]) -> None:
        self._phrases: tuple[ScopePhrase, ...] = tuple(phrases)

    def is_in_scope(self, text: str) -> bool:
        text = utf8_safe(text)
        return any(phrase.pattern.search(text) for phrase in self._phrases)

