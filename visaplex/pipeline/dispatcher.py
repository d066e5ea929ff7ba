"""Upstream dispatch: one chat completions call, classified into an outcome.

The dispatcher is the only stage that suspends. It makes exactly one attempt;
retry and backoff belong to the deployment, not to this code.

Outcome taxonomy (returned, never raised):
  - ``Success(answer)``               2xx reply; answer text or the policy fallback
  - ``UpstreamFailure(status, detail)`` non-2xx reply; detail capped at 300 chars
  - ``TransportFailure(reason)``      no usable response: connect error, timeout,
                                      bad URL, missing credential, undecodable body

The upstream credential comes from an injected ``CredentialProvider``. It is
read per request, placed in the Authorization header, and never logged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

import httpx

from visaplex.config import UpstreamConfig
from visaplex.constants import (
    DEFAULT_API_KEY_ENV,
    MAX_ERROR_DETAIL_CHARS,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
)
from visaplex.pipeline.prompt import PromptBundle
from visaplex.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)


# ─── Outcomes ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Success:
    answer: str


@dataclass(frozen=True)
class UpstreamFailure:
    status_code: int
    detail: str


@dataclass(frozen=True)
class TransportFailure:
    reason: str


UpstreamOutcome = Union[Success, UpstreamFailure, TransportFailure]


# ─── Credentials ──────────────────────────────────────────────────────────────


class CredentialProvider(Protocol):
    def get_api_key(self) -> Optional[str]:
        ...


class EnvCredentialProvider:
    """Reads the upstream API key from an environment variable on each call."""

    def __init__(self, env_var: str = DEFAULT_API_KEY_ENV) -> None:
        self.env_var = env_var

    def get_api_key(self) -> Optional[str]:
        return os.environ.get(self.env_var) or None


class StaticCredentialProvider:
    """Fixed API key; used by tests and by hosts that resolve secrets themselves."""

    def __init__(self, api_key: Optional[str]) -> None:
        self._api_key = api_key

    def get_api_key(self) -> Optional[str]:
        return self._api_key

    def __repr__(self) -> str:
        return "StaticCredentialProvider(api_key=***)"


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client(timeout_s: float) -> httpx.AsyncClient:
    """Create the shared upstream client.

    Created once at lifespan startup and stored in ``app.state.http_client``;
    never instantiated per request. ``timeout_s`` is the only cancellation
    mechanism for the upstream call.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=False,
    )


# ─── Answer extraction ────────────────────────────────────────────────────────


def extract_answer(payload: Any) -> Optional[str]:
    """Return ``choices[0].message.content`` stripped, or None when absent or blank."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content.strip() or None


# ─── Dispatcher ───────────────────────────────────────────────────────────────


class UpstreamDispatcher:
    """Sends a PromptBundle to an OpenAI-compatible chat completions endpoint.

    Args:
        http_client: Shared ``httpx.AsyncClient`` (see ``create_http_client``).
        credentials: Source of the bearer token.
        config:      Endpoint URL, model and generation parameters.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: CredentialProvider,
        config: UpstreamConfig,
    ) -> None:
        self._client = http_client
        self._credentials = credentials
        self._config = config

    def build_payload(self, bundle: PromptBundle) -> dict[str, Any]:
        return {
            "model": self._config.model,
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "messages": bundle.to_messages(),
        }

    async def dispatch(self, bundle: PromptBundle, fallback: str) -> UpstreamOutcome:
        """Make the single upstream attempt and classify the result.

        Args:
            bundle:   Assembled prompt for this request.
            fallback: Answer used when a 2xx reply carries no answer text.

        Returns:
            One UpstreamOutcome. Never raises for network or upstream errors.
        """
        api_key = self._credentials.get_api_key()
        if not api_key:
            logger.error("upstream_credential_missing")
            return TransportFailure(reason="missing_credential")

        try:
            with PerformanceLogger("upstream_dispatch", logger):
                response = await self._client.post(
                    self._config.url,
                    json=self.build_payload(bundle),
                    headers={"Authorization": f"Bearer {api_key}"},
                )
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            # ConnectError, TimeoutException, RemoteProtocolError, bad URL, ...
            logger.warning(
                "upstream_unavailable",
                upstream_url=self._config.url,
                error_type=type(exc).__name__,
            )
            return TransportFailure(reason=type(exc).__name__)

        if not response.is_success:
            detail = response.text[:MAX_ERROR_DETAIL_CHARS]
            logger.warning(
                "upstream_error",
                status_code=response.status_code,
                detail_chars=len(detail),
            )
            return UpstreamFailure(status_code=response.status_code, detail=detail)

        try:
            payload = response.json()
        except ValueError:
            logger.error("upstream_invalid_response", status_code=response.status_code)
            return TransportFailure(reason="invalid_response")

        answer = extract_answer(payload)
        if answer is None:
            logger.info("upstream_answer_missing", status_code=response.status_code)
            answer = fallback

        return Success(answer=answer)


def create_credential_provider(config: UpstreamConfig) -> CredentialProvider:
    """Default provider: the environment variable named by ``config.api_key_env``."""
    return EnvCredentialProvider(config.api_key_env)
