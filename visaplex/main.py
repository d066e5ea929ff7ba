"""VisaPlex FastAPI application factory + lifespan.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_policy(config.gateway.policy_path) → app.state.policy
  2. create_http_client()                    → app.state.http_client
  3. create_credential_provider()            → injected into the dispatcher
  4. AnswerPipeline(...)                     → app.state.pipeline
  5. set_chat_rate_limit()                   ← config.gateway.rate_limit
  6. app.state.ready = True

The config itself is loaded by create_app() (CORS origins are needed before
the app starts) and stored in app.state.config.

Shutdown: app.state.ready = False → close the shared HTTP client.

Run with:
  uvicorn visaplex.main:app --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from visaplex import __version__
from visaplex.api.limiter import limiter, set_chat_rate_limit
from visaplex.api.middleware import BodySizeLimitMiddleware
from visaplex.api.routes import chat_router, health_router, require_ready, root_router
from visaplex.config import Config, load_config
from visaplex.pipeline.dispatcher import (
    UpstreamDispatcher,
    create_credential_provider,
    create_http_client,
)
from visaplex.pipeline.errors import MethodNotAllowed, ServerError
from visaplex.pipeline.gateway import AnswerPipeline
from visaplex.policy.loader import load_policy
from visaplex.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the pipeline before serving; close the upstream client after."""
    logger.info("visaplex_starting", version=__version__)

    config: Config = app.state.config

    # load_policy() raises SystemExit on an invalid policy file, so the process
    # exits before ready=True is ever set.
    policy = load_policy(config.gateway.policy_path)
    app.state.policy = policy

    http_client: httpx.AsyncClient = create_http_client(config.upstream.timeout_s)
    app.state.http_client = http_client

    dispatcher = UpstreamDispatcher(
        http_client=http_client,
        credentials=create_credential_provider(config.upstream),
        config=config.upstream,
    )
    app.state.pipeline = AnswerPipeline(
        policy=policy,
        dispatcher=dispatcher,
        default_topic=config.gateway.default_topic,
    )
    set_chat_rate_limit(config.gateway.rate_limit)

    app.state.ready = True
    logger.info(
        "visaplex_ready",
        policy=policy.name,
        policy_version=policy.version,
        upstream_model=config.upstream.model,
        timeout_s=config.upstream.timeout_s,
        rate_limit=config.gateway.rate_limit,
    )

    yield

    logger.info("visaplex_shutting_down")
    app.state.ready = False

    try:
        await http_client.aclose()
    except Exception as exc:  # noqa: BLE001
        logger.warning("http_client_close_failed", error_type=type(exc).__name__)

    logger.info("visaplex_shutdown_complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the VisaPlex FastAPI application.

    Args:
        config: Explicit config; ``load_config()`` is used when omitted.

    Returns:
        Configured FastAPI application with lifespan, routers, and middleware.
    """
    if config is None:
        config = load_config()

    application = FastAPI(
        title="VisaPlex Gateway",
        description="PII-masking, scope-restricted gateway for NZ partner visa questions",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )
    application.state.config = config
    application.state.ready = False

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # In Starlette the LAST-added middleware is OUTERMOST (runs first).
    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.allow_origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    application.add_middleware(BodySizeLimitMiddleware)

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(chat_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == 405:
            error = MethodNotAllowed()
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers=exc.headers,
            )
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        error = ServerError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()
