"""Gateway error taxonomy.

Each error maps to exactly one HTTP status and one JSON body. The chat route
catches ``GatewayError`` at the outermost boundary and renders ``to_dict()``;
nothing else in the pipeline builds HTTP responses.

    ValidationError   400  {"error": "Missing question"}
    MethodNotAllowed  405  {"error": "Method not allowed"}
    UpstreamError     502  {"error": "Upstream error", "detail": "<≤300 chars>"}
    ServerError       500  {"error": "Server error"}
"""

from __future__ import annotations

from typing import Optional

from visaplex.constants import MAX_ERROR_DETAIL_CHARS


class GatewayError(Exception):
    """Base class for errors surfaced to the caller as a structured JSON body."""

    status_code: int = 500
    error: str = "Server error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(self.error if detail is None else f"{self.error}: {detail}")
        self.detail = detail

    def to_dict(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(GatewayError):
    """The question is missing or blank after trimming. No upstream call is made."""

    status_code = 400
    error = "Missing question"


class MethodNotAllowed(GatewayError):
    status_code = 405
    error = "Method not allowed"


class UpstreamError(GatewayError):
    """The upstream answered with a non-success status."""

    status_code = 502
    error = "Upstream error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail[:MAX_ERROR_DETAIL_CHARS])


class ServerError(GatewayError):
    """Transport failure or any unanticipated error. Carries no internal detail."""

    status_code = 500
    error = "Server error"

    def __init__(self) -> None:
        super().__init__(None)
