"""Policy definitions: prompt texts, Scope Phrase Set, Redaction Pattern Set.

A ``Policy`` is the single versioned artifact that decides what the gateway
discloses upstream and which answers users get. It is built once at startup
(``default_policy()`` or ``visaplex.policy.loader.load_policy()``) and injected
into the pipeline; nothing in the pipeline reads these constants directly.

All patterns are compiled with google-re2 when the policy is built, never per
request. re2 matching is linear in the input length, so a hostile question
cannot trigger catastrophic backtracking.

IMPORT RULES:
  - ``import re2`` ONLY in this package and in visaplex/pipeline/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import re2

POLICY_VERSION = 1


# ---------------------------------------------------------------------------
# Pattern entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RedactionPattern:
    """One PII class: every match of ``pattern`` is replaced by ``placeholder``.

    Fields:
        pattern:     Pre-compiled re2 pattern object.
        name:        Short class name (``email``, ``phone``, ``id``); used as the
                     key of redaction counts in log lines.
        placeholder: Fixed replacement text. Must never match any pattern of the
                     same policy, which is what makes redaction idempotent.
        source:      Uncompiled pattern text, kept for diagnostics.
    """

    pattern: Any  # re2._Regexp
    name: str
    placeholder: str
    source: str


@dataclass(frozen=True)
class ScopePhrase:
    """A case-insensitive topic indicator."""

    pattern: Any  # re2._Regexp
    source: str


def compile_redaction_pattern(name: str, source: str, placeholder: str) -> RedactionPattern:
    """Compile a redaction pattern. Raises ``re2.error`` on invalid syntax."""
    return RedactionPattern(
        pattern=re2.compile(source),
        name=name,
        placeholder=placeholder,
        source=source,
    )


def compile_scope_phrase(source: str) -> ScopePhrase:
    """Compile a scope phrase; matching is always case-insensitive.

    The phrase is wrapped in a non-capturing group so a top-level alternation
    (``medical|police certificate``) stays under the case-insensitive flag.
    """
    return ScopePhrase(pattern=re2.compile(f"(?i)(?:{source})"), source=source)


# ===========================================================================
# Default policy texts (version 1, NZ partner visas)
# ===========================================================================

DEFAULT_POLICY_NAME = "nz-partner-visa"

DEFAULT_SYSTEM_PROMPT = (
    "You are VisaPlex AI. Scope: ONLY New Zealand Partner visas "
    "(Partnership Work & Partner of a New Zealander Residence). "
    "If the question is out of scope, use the refusal message. "
    "When in scope, answer in plain language with concise bullet points. "
    "Avoid legal advice; provide general guidance and note that details vary by case. "
    "Prefer INZ terminology (genuine and stable, living together, health, character, "
    "police certificates, medicals). "
    "If the user shares personal identifiers, acknowledge but do not repeat them. "
    "Keep answers under ~120 words."
)

DEFAULT_OUT_OF_SCOPE_HINT = "If out of scope, reply ONLY with the refusal."

DEFAULT_REFUSAL = (
    "I can help with general information about **New Zealand Partner (Work/Residence) visas** only. "
    "For other visa categories or personal legal advice, please book a consultation."
)

DEFAULT_DISCLAIMER = "_(General information only — not legal advice.)_"

DEFAULT_NO_ANSWER = "No answer."

# ===========================================================================
# Redaction Pattern Set: applied in this order, each on the previous output
# ===========================================================================

DEFAULT_REDACTION_SPECS: tuple[tuple[str, str, str], ...] = (
    ("email", r"(?i)[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", "[redacted email]"),
    # 9+ chars: a digit, 7+ digits/separators, a digit. Optional leading "+".
    ("phone", r"(\+?\d[\d\s\-()]{7,}\d)", "[redacted phone]"),
    # Passport-style (two capitals + 6-9 digits) or a bare 8-10 digit run.
    ("id", r"\b([A-Z]{2}\d{6,9}|\d{8,10})\b", "[redacted id]"),
)

# ===========================================================================
# Scope Phrase Set: partnership, visa-process, and immigration-authority terms
# ===========================================================================

DEFAULT_SCOPE_PHRASES: tuple[str, ...] = (
    "partner",
    "partnership",
    "spouse",
    "de facto",
    "living together",
    "work visa",
    "residence",
    "relationship evidence",
    "genuine.*stable",
    "medical|police certificate",
    "timeline|processing",
    "INZ|immigration nz",
)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Policy:
    """Versioned policy injected into the pipeline at construction time.

    Fields:
        version:            Policy schema version (currently 1).
        name:               Human-readable policy identifier, logged at startup.
        system_prompt:      Operating policy sent as the first system entry.
        out_of_scope_hint:  Second system entry, sent only for out-of-scope questions.
        refusal:            Refusal Text, supplied verbatim to the model and used as
                            the fallback answer for out-of-scope questions.
        disclaimer:         Disclaimer appended to answers when requested.
        no_answer:          Fallback answer for in-scope questions when the upstream
                            reply carries no answer text.
        redaction_patterns: Redaction Pattern Set, in application order.
        scope_phrases:      Scope Phrase Set.
    """

    version: int
    name: str
    system_prompt: str
    out_of_scope_hint: str
    refusal: str
    disclaimer: str
    no_answer: str
    redaction_patterns: tuple[RedactionPattern, ...]
    scope_phrases: tuple[ScopePhrase, ...]

    def fallback_answer(self, in_scope: bool) -> str:
        return self.no_answer if in_scope else self.refusal


def build_policy(
    *,
    version: int = POLICY_VERSION,
    name: str = DEFAULT_POLICY_NAME,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    out_of_scope_hint: str = DEFAULT_OUT_OF_SCOPE_HINT,
    refusal: str = DEFAULT_REFUSAL,
    disclaimer: str = DEFAULT_DISCLAIMER,
    no_answer: str = DEFAULT_NO_ANSWER,
    redaction_specs: Iterable[tuple[str, str, str]] = DEFAULT_REDACTION_SPECS,
    scope_phrases: Iterable[str] = DEFAULT_SCOPE_PHRASES,
) -> Policy:
    """Compile a Policy from plain values.

    Raises:
        re2.error:  A pattern does not compile.
        ValueError: A placeholder is matched by one of the redaction patterns,
                    which would break idempotent redaction.
    """
    patterns = tuple(
        compile_redaction_pattern(n, source, placeholder)
        for n, source, placeholder in redaction_specs
    )
    for entry in patterns:
        for other in patterns:
            if other.pattern.search(entry.placeholder):
                raise ValueError(
                    f"placeholder {entry.placeholder!r} is matched by "
                    f"redaction pattern {other.name!r}"
                )

    return Policy(
        version=version,
        name=name,
        system_prompt=system_prompt,
        out_of_scope_hint=out_of_scope_hint,
        refusal=refusal,
        disclaimer=disclaimer,
        no_answer=no_answer,
        redaction_patterns=patterns,
        scope_phrases=tuple(compile_scope_phrase(s) for s in scope_phrases),
    )


_DEFAULT_POLICY: Policy | None = None


def default_policy() -> Policy:
    """Return the built-in version 1 policy (compiled once per process)."""
    global _DEFAULT_POLICY
    if _DEFAULT_POLICY is None:
        _DEFAULT_POLICY = build_policy()
    return _DEFAULT_POLICY
