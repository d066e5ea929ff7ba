"""Programmatic uvicorn entry point for the VisaPlex gateway.

Reads host and port from the loaded config (127.0.0.1:8000 by default) and
starts uvicorn with conservative connection limits:

  --limit-concurrency 100  matches the upstream connection pool size
  --backlog 50             OS connection queue depth
  --timeout-keep-alive 5   short keep-alive window

Usage:
    python -m visaplex.run
    visaplex                 # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from visaplex.config import load_config
from visaplex.constants import POOL_MAX_CONNECTIONS

UVICORN_LIMIT_CONCURRENCY: int = POOL_MAX_CONNECTIONS

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the gateway.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "visaplex.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
