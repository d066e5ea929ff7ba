"""Unit tests for policy definitions and policy file loading.

Covers:
  - built-in version 1 policy texts and pattern sets
  - placeholder/pattern collision check in build_policy()
  - load_policy() search order and YAML overrides
  - fatal validation: missing/unsupported version, bad YAML, bad patterns
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
import re2

from visaplex.policy import build_policy, default_policy, load_policy, policy_from_dict
from visaplex.policy.definitions import DEFAULT_SCOPE_PHRASES


def _write(path: Path, content: str) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content))
    return str(path)


# ─── Built-in policy ──────────────────────────────────────────────────────────


class TestDefaultPolicy:
    def test_version_and_name(self) -> None:
        policy = default_policy()
        assert policy.version == 1
        assert policy.name == "nz-partner-visa"

    def test_texts(self) -> None:
        policy = default_policy()
        assert policy.system_prompt.startswith("You are VisaPlex AI. Scope: ONLY New Zealand Partner visas")
        assert policy.refusal.startswith(
            "I can help with general information about **New Zealand Partner (Work/Residence) visas** only."
        )
        assert policy.disclaimer == "_(General information only — not legal advice.)_"
        assert policy.no_answer == "No answer."

    def test_fallback_answer(self) -> None:
        policy = default_policy()
        assert policy.fallback_answer(True) == "No answer."
        assert policy.fallback_answer(False) == policy.refusal

    def test_pattern_sets(self) -> None:
        policy = default_policy()
        assert [p.name for p in policy.redaction_patterns] == ["email", "phone", "id"]
        assert tuple(p.source for p in policy.scope_phrases) == DEFAULT_SCOPE_PHRASES
        assert len(policy.scope_phrases) == 12

    def test_cached(self) -> None:
        assert default_policy() is default_policy()


class TestBuildPolicy:
    def test_placeholder_matching_a_pattern_rejected(self) -> None:
        with pytest.raises(ValueError, match="placeholder"):
            build_policy(redaction_specs=(("digits", r"\d+", "[redacted 123]"),))

    def test_placeholder_matching_another_pattern_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_policy(
                redaction_specs=(
                    ("name", r"Smith", "[redacted name]"),
                    ("word", r"redacted", "[gone]"),
                )
            )

    def test_invalid_regex_raises_re2_error(self) -> None:
        with pytest.raises(re2.error):
            build_policy(redaction_specs=(("bad", r"(unclosed", "[x]"),))


# ─── Policy files ─────────────────────────────────────────────────────────────


class TestLoadPolicy:
    def test_no_file_returns_default(self) -> None:
        assert load_policy() is default_policy()

    def test_nonexistent_path_returns_default(self) -> None:
        assert load_policy("/nonexistent/policy.yaml") is default_policy()

    def test_text_override(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "policy.yaml",
            """\
            version: 1
            name: pilot
            texts:
              refusal: "Partner visas only, sorry."
              disclaimer: "(Not legal advice.)"
            """,
        )
        policy = load_policy(path)
        assert policy.name == "pilot"
        assert policy.refusal == "Partner visas only, sorry."
        assert policy.disclaimer == "(Not legal advice.)"
        assert policy.system_prompt == default_policy().system_prompt
        assert [p.name for p in policy.redaction_patterns] == ["email", "phone", "id"]

    def test_scope_phrases_replace_default(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "policy.yaml",
            """\
            version: 1
            scope_phrases:
              - partner
              - culturally recognised marriage
            """,
        )
        policy = load_policy(path)
        assert [p.source for p in policy.scope_phrases] == ["partner", "culturally recognised marriage"]

    def test_redaction_replace_default(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "policy.yaml",
            """\
            version: 1
            redaction:
              - name: ird
                pattern: '\\d{3}-\\d{3}-\\d{3}'
                placeholder: "[redacted ird]"
            """,
        )
        policy = load_policy(path)
        assert [p.name for p in policy.redaction_patterns] == ["ird"]
        assert policy.redaction_patterns[0].pattern.search("123-456-789")

    def test_env_var_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write(tmp_path / "env-policy.yaml", "version: 1\nname: from-env\n")
        monkeypatch.setenv("VISAPLEX_POLICY", path)
        assert load_policy().name == "from-env"

    def test_working_directory_file(self, tmp_path: Path) -> None:
        _write(tmp_path / ".visaplex" / "policy.yaml", "version: 1\nname: local\n")
        assert load_policy().name == "local"

    def test_explicit_path_wins_over_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        explicit = _write(tmp_path / "a.yaml", "version: 1\nname: explicit\n")
        env = _write(tmp_path / "b.yaml", "version: 1\nname: env\n")
        monkeypatch.setenv("VISAPLEX_POLICY", env)
        assert load_policy(explicit).name == "explicit"


class TestPolicyValidation:
    @pytest.mark.parametrize(
        "content",
        [
            "name: no-version\n",
            "version: 2\n",
            "version: 1\ntexts: [a, b]\n",
            "version: 1\ntexts:\n  refusal: ''\n",
            "version: 1\nscope_phrases: []\n",
            "version: 1\nscope_phrases: partner\n",
            "version: 1\nredaction: {name: x}\n",
            "version: 1\nredaction:\n  - name: x\n    pattern: 'a+'\n",
            "version: 1\nredaction:\n  - name: x\n    pattern: '(unclosed'\n    placeholder: '[x]'\n",
            "version: 1\nredaction:\n  - name: x\n    pattern: 'red'\n    placeholder: '[redacted]'\n",
            "- just\n- a list\n",
            "version: [1, 2\n",
        ],
    )
    def test_invalid_file_exits(self, tmp_path: Path, content: str, capsys: pytest.CaptureFixture) -> None:
        path = _write(tmp_path / "policy.yaml", content)
        with pytest.raises(SystemExit) as exc_info:
            load_policy(path)
        assert exc_info.value.code == 1
        assert "POLICY ERROR" in capsys.readouterr().err

    def test_policy_from_dict_defaults(self) -> None:
        policy = policy_from_dict({"version": 1})
        assert policy.refusal == default_policy().refusal
