"""Prompt assembly: redacted question + scope verdict + policy → ``PromptBundle``.

Entry order is fixed:

  1. system  policy system prompt                     (always)
  2. system  out-of-scope hint                        (out of scope only)
  3. user    topic, redacted question, scope tag      (always)
  4. user    "Refusal to use: <refusal>"              (out of scope only)

Scope-narrowing instructions precede the user content, and the refusal is
supplied verbatim rather than left to the model to phrase.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from visaplex.policy.definitions import Policy

IN_SCOPE_TAG = "This appears IN SCOPE."
OUT_OF_SCOPE_TAG = "This appears OUT OF SCOPE."


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"


@dataclass(frozen=True)
class PromptEntry:
    role: Role
    content: str


@dataclass(frozen=True)
class PromptBundle:
    """Ordered, immutable sequence of role-tagged entries for one request."""

    entries: tuple[PromptEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def to_messages(self) -> list[dict[str, str]]:
        """Serialize to the chat completions ``messages`` array."""
        return [{"role": e.role.value, "content": e.content} for e in self.entries]


def assemble_prompt(redacted: str, in_scope: bool, topic: str, policy: Policy) -> PromptBundle:
    entries: list[PromptEntry] = [PromptEntry(Role.SYSTEM, policy.system_prompt)]
    if not in_scope:
        entries.append(PromptEntry(Role.SYSTEM, policy.out_of_scope_hint))

    entries.append(
        PromptEntry(
            Role.USER,
            f"Topic: {topic}\n"
            f"User question (lightly redacted): {redacted}\n"
            f"{IN_SCOPE_TAG if in_scope else OUT_OF_SCOPE_TAG}"
            "\nRespond accordingly.",
        )
    )
    if not in_scope:
        entries.append(PromptEntry(Role.USER, f"Refusal to use: {policy.refusal}"))

    return PromptBundle(entries=tuple(entries))
