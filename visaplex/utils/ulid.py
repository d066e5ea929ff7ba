"""Request id generation.

Each chat request gets a ULID (26 chars, Crockford Base32, time-sortable). It is
bound to the log context and echoed back to the caller as ``X-Request-ID`` so a
user-reported failure can be matched to its log lines.
"""

from __future__ import annotations

from ulid import ULID


def generate_request_id() -> str:
    """Return a new 26-character ULID string, e.g. ``"01KJ0JRVHYA7KX32VPN5ZSCTMV"``."""
    return str(ULID())
