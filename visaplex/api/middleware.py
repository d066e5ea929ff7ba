"""Request body size limit middleware.

A question never needs more than a few kilobytes, so bodies above
MAX_REQUEST_BODY_BYTES are rejected with HTTP 413 before the route (and
therefore before redaction or any upstream call) runs.

Two-phase check:
  1. Content-Length fast path: reject on the declared size without reading.
  2. Chunked path: accumulate with a rolling cap and reject once exceeded.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from visaplex.constants import MAX_REQUEST_BODY_BYTES
from visaplex.utils.logger import get_logger

logger = get_logger(__name__)

_PAYLOAD_TOO_LARGE_BODY: dict = {"error": "Request body too large"}

_INVALID_CONTENT_LENGTH_BODY: dict = {"error": "Invalid Content-Length header"}


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Starlette middleware enforcing the request body cap.

    Content-Length equal to the cap is accepted; one byte more is rejected.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        content_length_header = request.headers.get("content-length")

        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "invalid_content_length",
                    value=content_length_header,
                    path=request.url.path,
                )
                return JSONResponse(status_code=400, content=_INVALID_CONTENT_LENGTH_BODY)

            if declared_size > MAX_REQUEST_BODY_BYTES:
                logger.warning(
                    "request_body_too_large",
                    declared_size=declared_size,
                    limit=MAX_REQUEST_BODY_BYTES,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)

            return await call_next(request)

        body_chunks: list[bytes] = []
        total_size: int = 0

        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > MAX_REQUEST_BODY_BYTES:
                logger.warning(
                    "request_body_too_large",
                    accumulated_size=total_size,
                    limit=MAX_REQUEST_BODY_BYTES,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)
            body_chunks.append(chunk)

        # Starlette's Request.body() returns request._body when set, so the route
        # can read the body again after the stream has been consumed here.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]

        return await call_next(request)
