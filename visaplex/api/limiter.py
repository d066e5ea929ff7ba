"""Shared rate limiter for the chat route.

slowapi (Starlette-compatible rate limiting), keyed by client address. The
limit string comes from ``gateway.rate_limit`` in the config; the lifespan
pushes it here once at startup, before the app is marked ready.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from visaplex.constants import DEFAULT_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address)

_chat_rate_limit: str = DEFAULT_RATE_LIMIT


def set_chat_rate_limit(value: str) -> None:
    global _chat_rate_limit
    _chat_rate_limit = value


def chat_rate_limit() -> str:
    """Limit provider evaluated by slowapi on every chat request."""
    return _chat_rate_limit
