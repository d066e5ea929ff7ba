"""Root test configuration for VisaPlex.

Every test runs with no config or policy file on the search path and without
an upstream credential in the environment, so a developer's local
``.visaplex/`` directory or exported ``OPENAI_API_KEY`` can never leak into a
test. Tests that need a credential inject a ``StaticCredentialProvider``.
"""

import pytest

_ISOLATED_ENV_VARS = (
    "VISAPLEX_CONFIG",
    "VISAPLEX_POLICY",
    "VISAPLEX_PORT",
    "VISAPLEX_DEFAULT_TOPIC",
    "OPENAI_API_KEY",
)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Clear gateway env vars and run from an empty working directory."""
    for name in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("visaplex.config.DEFAULT_CONFIG_PATHS", [".visaplex/config.yaml"])


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests.

    Prevents test-to-test rate limit bleed where several tests hitting the
    chat endpoint within the same minute would trigger a 429.
    """
    from visaplex.api.limiter import limiter
    try:
        limiter._storage.reset()
    except Exception:
        pass  # Storage may not support reset in all backends
