"""Shared constants for the VisaPlex gateway.

Numeric caps and wire-level literals used across modules live here.
"""

# ─── Request / Response Limits ───────────────────────────────────────────────

# Request bodies above this size are rejected with HTTP 413 before the
# pipeline runs. A single question never needs more.
MAX_REQUEST_BODY_BYTES: int = 65_536  # 64 KB

# Upstream error bodies are truncated to this many characters before they are
# placed in the 502 ``detail`` field or in a log line.
MAX_ERROR_DETAIL_CHARS: int = 300

# ─── Request Defaults ────────────────────────────────────────────────────────

DEFAULT_TOPIC: str = "partner_visa_nz"

# ─── Upstream Defaults ───────────────────────────────────────────────────────

DEFAULT_UPSTREAM_URL: str = "https://api.openai.com/v1/chat/completions"
DEFAULT_UPSTREAM_MODEL: str = "gpt-4o-mini"
DEFAULT_TEMPERATURE: float = 0.2
DEFAULT_MAX_TOKENS: int = 220
DEFAULT_API_KEY_ENV: str = "OPENAI_API_KEY"

# Transport timeout for the single upstream call (seconds). This is the only
# cancellation mechanism; expiry surfaces as a transport failure (HTTP 500).
DEFAULT_UPSTREAM_TIMEOUT_S: float = 30.0

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0

# ─── Host Layer ──────────────────────────────────────────────────────────────

CHAT_PATH: str = "/api/partner-visa-chat"
DEFAULT_RATE_LIMIT: str = "30/minute"
REQUEST_ID_HEADER: str = "X-Request-ID"
