"""Unit tests for prompt assembly (visaplex.pipeline.prompt)."""

from __future__ import annotations

from visaplex.pipeline.prompt import (
    IN_SCOPE_TAG,
    OUT_OF_SCOPE_TAG,
    PromptBundle,
    PromptEntry,
    Role,
    assemble_prompt,
)
from visaplex.policy import default_policy


class TestInScope:
    def test_two_entries(self) -> None:
        bundle = assemble_prompt("Q?", True, "partner_visa_nz", default_policy())
        assert len(bundle) == 2
        assert [e.role for e in bundle.entries] == [Role.SYSTEM, Role.USER]

    def test_system_prompt_first(self) -> None:
        policy = default_policy()
        bundle = assemble_prompt("Q?", True, "partner_visa_nz", policy)
        assert bundle.entries[0].content == policy.system_prompt

    def test_user_entry_text(self) -> None:
        bundle = assemble_prompt("How long?", True, "partner_visa_nz", default_policy())
        assert bundle.entries[1].content == (
            "Topic: partner_visa_nz\n"
            "User question (lightly redacted): How long?\n"
            "This appears IN SCOPE.\n"
            "Respond accordingly."
        )


class TestOutOfScope:
    def test_four_entries_in_order(self) -> None:
        policy = default_policy()
        bundle = assemble_prompt("Tourist visa?", False, "partner_visa_nz", policy)
        assert len(bundle) == 4
        assert bundle.entries == (
            PromptEntry(Role.SYSTEM, policy.system_prompt),
            PromptEntry(Role.SYSTEM, policy.out_of_scope_hint),
            PromptEntry(
                Role.USER,
                "Topic: partner_visa_nz\n"
                "User question (lightly redacted): Tourist visa?\n"
                f"{OUT_OF_SCOPE_TAG}\n"
                "Respond accordingly.",
            ),
            PromptEntry(Role.USER, f"Refusal to use: {policy.refusal}"),
        )

    def test_hint_text(self) -> None:
        bundle = assemble_prompt("x", False, "t", default_policy())
        assert bundle.entries[1].content == "If out of scope, reply ONLY with the refusal."

    def test_in_scope_tag_absent(self) -> None:
        bundle = assemble_prompt("x", False, "t", default_policy())
        assert all(IN_SCOPE_TAG not in e.content for e in bundle.entries)


def test_to_messages_serialization() -> None:
    bundle = PromptBundle(
        entries=(PromptEntry(Role.SYSTEM, "sys"), PromptEntry(Role.USER, "hi"))
    )
    assert bundle.to_messages() == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]


def test_custom_topic_is_echoed() -> None:
    bundle = assemble_prompt("x", True, "residence_pathways", default_policy())
    assert bundle.entries[-1].content.startswith("Topic: residence_pathways\n")
