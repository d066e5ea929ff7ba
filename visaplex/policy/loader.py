"""Policy file loading.

Search order:
  1. ``policy_path`` argument (from ``gateway.policy_path`` in the config file)
  2. VISAPLEX_POLICY environment variable
  3. ``.visaplex/policy.yaml`` (working directory)
  4. Built-in default policy (no file needed)

File format (every key except ``version`` is optional; missing keys keep the
built-in value)::

    version: 1
    name: nz-partner-visa
    texts:
      system_prompt: "..."
      out_of_scope_hint: "..."
      refusal: "..."
      disclaimer: "..."
      no_answer: "..."
    scope_phrases:
      - partner
      - "genuine.*stable"
    redaction:
      - name: email
        pattern: "(?i)[A-Z0-9._%+-]+@[A-Z0-9.-]+\\.[A-Z]{2,}"
        placeholder: "[redacted email]"

A ``redaction`` or ``scope_phrases`` list replaces the built-in set entirely;
lists are never merged.

Like the config loader, an invalid policy file is fatal: the error goes to
stderr and the process exits with status 1 before the gateway becomes ready.
"""

from __future__ import annotations

import os
import sys
from typing import NoReturn, Optional

import re2
import yaml

from visaplex.policy.definitions import (
    DEFAULT_REDACTION_SPECS,
    DEFAULT_SCOPE_PHRASES,
    Policy,
    build_policy,
    default_policy,
)
from visaplex.utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_POLICY_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_POLICY_PATHS = [".visaplex/policy.yaml"]

_TEXT_KEYS = ("system_prompt", "out_of_scope_hint", "refusal", "disclaimer", "no_answer")


def load_policy(policy_path: Optional[str] = None) -> Policy:
    """Load the policy from the first file found, or return the built-in default.

    Raises:
        SystemExit(1): Invalid YAML, missing or unsupported ``version``, malformed
                       entries, uncompilable patterns, or a placeholder that one of
                       the redaction patterns would match.
    """
    search_paths: list[str] = []
    if policy_path:
        search_paths.append(policy_path)
    env_policy = os.environ.get("VISAPLEX_POLICY")
    if env_policy:
        search_paths.append(env_policy)
    search_paths.extend(DEFAULT_POLICY_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        policy = default_policy()
        logger.info("policy_default_used", name=policy.name, version=policy.version)
        return policy

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(f"Failed to parse {found_path}: {exc}")
    except OSError as exc:
        _fail(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        _fail(f"{found_path} must be a YAML mapping with a 'version' field.")

    policy = policy_from_dict(raw, source=found_path)
    logger.info(
        "policy_loaded",
        path=found_path,
        name=policy.name,
        version=policy.version,
        scope_phrases=len(policy.scope_phrases),
        redaction_patterns=[p.name for p in policy.redaction_patterns],
    )
    return policy


def policy_from_dict(raw: dict, source: str = "<dict>") -> Policy:
    """Build a Policy from a parsed policy mapping.

    Raises:
        SystemExit(1): See ``load_policy()``.
    """
    version = raw.get("version")
    if version is None:
        _fail(f"{source} is missing the required 'version' field.")
    if version not in SUPPORTED_POLICY_VERSIONS:
        _fail(
            f"Unsupported policy version in {source}: {version}. "
            f"Supported versions: {sorted(SUPPORTED_POLICY_VERSIONS)}."
        )

    texts_raw = raw.get("texts") or {}
    if not isinstance(texts_raw, dict):
        _fail(f"{source}: 'texts' must be a mapping.")
    texts: dict[str, str] = {}
    for key in _TEXT_KEYS:
        if key in texts_raw:
            value = texts_raw[key]
            if not isinstance(value, str) or not value.strip():
                _fail(f"{source}: texts.{key} must be a non-empty string.")
            texts[key] = value

    scope_phrases = raw.get("scope_phrases", DEFAULT_SCOPE_PHRASES)
    if (
        not isinstance(scope_phrases, (list, tuple))
        or not scope_phrases
        or not all(isinstance(p, str) and p for p in scope_phrases)
    ):
        _fail(f"{source}: 'scope_phrases' must be a non-empty list of strings.")

    redaction_specs = DEFAULT_REDACTION_SPECS
    if "redaction" in raw:
        redaction_specs = _parse_redaction(raw["redaction"], source)

    kwargs: dict = {}
    if "name" in raw:
        kwargs["name"] = str(raw["name"])

    try:
        return build_policy(
            version=version,
            redaction_specs=redaction_specs,
            scope_phrases=tuple(scope_phrases),
            **texts,
            **kwargs,
        )
    except re2.error as exc:
        _fail(f"{source}: invalid pattern: {exc}")
    except ValueError as exc:
        _fail(f"{source}: {exc}")


def _parse_redaction(entries: object, source: str) -> tuple[tuple[str, str, str], ...]:
    if not isinstance(entries, list):
        _fail(f"{source}: 'redaction' must be a list.")
    specs: list[tuple[str, str, str]] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            _fail(f"{source}: redaction[{i}] must be a mapping.")
        missing = [k for k in ("name", "pattern", "placeholder") if not entry.get(k)]
        if missing:
            _fail(f"{source}: redaction[{i}] is missing {', '.join(missing)}.")
        specs.append((str(entry["name"]), str(entry["pattern"]), str(entry["placeholder"])))
    return tuple(specs)


def _fail(message: str) -> NoReturn:
    print(f"POLICY ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)
