"""PII redaction: best-effort masking before any text leaves the gateway.

Patterns run in policy order, each on the output of the previous one. Because
no placeholder matches any pattern (checked when the policy is built), running
the redactor twice gives the same text as running it once.

This is a masking layer, not certified anonymisation: names, street addresses,
and unusual identifier formats pass through unchanged.

Patterns arrive pre-compiled (google-re2) from the policy; never ``import re`` here.
"""

from __future__ import annotations

from typing import Iterable

from visaplex.policy.definitions import RedactionPattern
from visaplex.utils.text import utf8_safe


class Redactor:
    """Applies a Redaction Pattern Set to question text."""

    def __init__(self, patterns: Iterable[RedactionPattern]) -> None:
        self._patterns: tuple[RedactionPattern, ...] = tuple(patterns)

    @property
    def pattern_names(self) -> list[str]:
        return [p.name for p in self._patterns]

    def redact(self, text: str) -> str:
        """Return ``text`` with every pattern match replaced by its placeholder."""
        redacted, _ = self.redact_with_counts(text)
        return redacted

    def redact_with_counts(self, text: str) -> tuple[str, dict[str, int]]:
        """Redact ``text`` and report how many substitutions each class made.

        The counts are safe to log; the matched text never leaves this method.
        Text UTF-8 cannot encode is replaced first, so no input raises.
        """
        text = utf8_safe(text)
        counts: dict[str, int] = {}
        for entry in self._patterns:
            text, n = entry.pattern.subn(entry.placeholder, text)
            if n:
                counts[entry.name] = n
        return text, counts
