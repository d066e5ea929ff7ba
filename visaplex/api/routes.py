"""HTTP routes for the VisaPlex gateway.

Implements:
  POST    /api/partner-visa-chat — run the answer pipeline
  OPTIONS /api/partner-visa-chat — bare preflight answer; pipeline not invoked
  GET     /health                — readiness (503 before startup completes)
  GET     /                      — service discovery

Any other method on the chat path is rejected by routing with 405; the
app-level handler in visaplex.main renders it as {"error": "Method not allowed"}.

Every chat response, success or failure, carries an ``X-Request-ID`` header
matching the ``request_id`` field of the request's log lines.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from visaplex import __version__
from visaplex.api.limiter import chat_rate_limit, limiter
from visaplex.constants import CHAT_PATH, REQUEST_ID_HEADER
from visaplex.pipeline.errors import GatewayError, ServerError
from visaplex.pipeline.gateway import AnswerPipeline
from visaplex.utils.logger import clear_request_id, get_logger, set_request_id
from visaplex.utils.ulid import generate_request_id

logger = get_logger(__name__)

chat_router = APIRouter(tags=["chat"])
health_router = APIRouter(tags=["health"])
root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: HTTP 503 until the lifespan has built the pipeline."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="Service starting")


# ─── Chat ─────────────────────────────────────────────────────────────────────


@chat_router.post(CHAT_PATH)
@limiter.limit(chat_rate_limit)
async def partner_visa_chat(request: Request) -> JSONResponse:
    """Answer one partner-visa question.

    Every failure is converted to exactly one JSON error body here; no partial
    response is ever emitted.

    Returns:
        200 {"answer", "scope"} · 400 Missing question · 502 Upstream error
        (detail ≤ 300 chars) · 500 Server error.
    """
    request_id = generate_request_id()
    set_request_id(request_id)
    try:
        pipeline: AnswerPipeline = request.app.state.pipeline
        try:
            body = await _read_json_body(request)
            answer = await pipeline.run(body)
        except GatewayError as exc:
            logger.info("chat_rejected", status_code=exc.status_code, error=exc.error)
            return _json_response(exc.status_code, exc.to_dict(), request_id)
        except Exception as exc:  # noqa: BLE001
            # No internal detail leaves the process: type only, no message.
            logger.error("chat_failed", error_type=type(exc).__name__)
            error = ServerError()
            return _json_response(error.status_code, error.to_dict(), request_id)
        return _json_response(200, answer.to_dict(), request_id)
    finally:
        clear_request_id()


@chat_router.options(CHAT_PATH)
async def partner_visa_chat_preflight() -> Response:
    """Bare OPTIONS answer. Browser preflights are answered by CORSMiddleware first."""
    return Response(status_code=200)


async def _read_json_body(request: Request) -> Optional[Any]:
    """Decode the body as JSON; an empty, undecodable or too deeply nested body becomes None."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as exc:
        logger.info("chat_body_not_json", body_bytes=len(raw), error_type=type(exc).__name__)
        return None


def _json_response(status_code: int, content: dict, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={REQUEST_ID_HEADER: request_id},
    )


# ─── Health ───────────────────────────────────────────────────────────────────


@health_router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Readiness check.

    Response body (200):
        {"status": "ok", "version": "...", "policy": "...", "policy_version": 1,
         "upstream_model": "..."}
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="Service starting")

    pipeline: AnswerPipeline = request.app.state.pipeline
    return {
        "status": "ok",
        "version": __version__,
        "policy": pipeline.policy.name,
        "policy_version": pipeline.policy.version,
        "upstream_model": request.app.state.config.upstream.model,
    }


# ─── Root ─────────────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, str]:
    return {
        "service": "VisaPlex",
        "tagline": "General information about New Zealand partner visas",
        "chat": CHAT_PATH,
        "health": "/health",
    }
