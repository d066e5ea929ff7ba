"""Ingress validation: the raw request body becomes a typed ``IncomingRequest``.

This is the only place the untyped body is touched. Every later stage receives
the frozen dataclass, never the dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from visaplex.constants import DEFAULT_TOPIC
from visaplex.pipeline.errors import ValidationError
from visaplex.utils.text import utf8_safe


@dataclass(frozen=True)
class IncomingRequest:
    """A validated chat request.

    Fields:
        question:           Trimmed, non-empty question text (not yet redacted).
        topic:              Topic label echoed into the prompt.
        include_disclaimer: Append the policy disclaimer to the answer.
    """

    question: str
    topic: str = DEFAULT_TOPIC
    include_disclaimer: bool = True


def parse_request(body: Any, default_topic: str = DEFAULT_TOPIC) -> IncomingRequest:
    """Parse and validate a decoded JSON body.

    Coercion rules:
      - A body that is not a mapping is treated as ``{}``.
      - ``question``: missing or null becomes ``""``; anything else goes through
        ``str()``; the result is stripped.
      - ``topic``: missing or null falls back to ``default_topic``.
      - Null ``question`` and ``topic`` count as absent rather than being
        stringified to ``"null"``.
      - Unpaired surrogates (from ``\\ud800``-style JSON escapes) in
        ``question`` and ``topic`` become ``?``.
      - ``disclaimer``: missing means True; otherwise the value's truthiness.

    Raises:
        ValidationError: ``question`` is empty after stripping.
    """
    if not isinstance(body, dict):
        body = {}

    raw_question = body.get("question")
    question = "" if raw_question is None else utf8_safe(str(raw_question)).strip()
    if not question:
        raise ValidationError()

    raw_topic = body.get("topic")
    topic = default_topic if raw_topic is None else utf8_safe(str(raw_topic))

    include_disclaimer = bool(body.get("disclaimer", True))

    return IncomingRequest(
        question=question,
        topic=topic,
        include_disclaimer=include_disclaimer,
    )
