"""Text helpers shared by the pipeline stages."""

from __future__ import annotations


def utf8_safe(text: str) -> str:
    """Return ``text`` with anything UTF-8 cannot encode (lone surrogates) replaced by ``?``.

    JSON allows ``\\ud800``-style escapes that decode to unpaired surrogates;
    re2 and the upstream request body both need valid UTF-8.
    """
    return text.encode("utf-8", errors="replace").decode("utf-8")
