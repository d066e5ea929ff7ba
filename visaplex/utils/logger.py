"""Structured logging for the VisaPlex gateway.

Every log line is a structlog event with keyword fields. The request id of the
chat request being served (if any) is attached automatically through
structlog.contextvars,
so pipeline stages never have to thread it through by hand.

Never pass the upstream credential, the raw question, or the redacted question
to a logger. Log lengths, counts, and verdicts instead.
"""

import logging
import sys
import time
from typing import Any, Optional

import structlog
from structlog.types import Processor


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structured logging for the gateway.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, coloured console output otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "visaplex") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager timing one operation and logging its duration.

    Durations above ``warn_after_ms`` are logged at WARNING, everything else at
    DEBUG. Failures are logged at ERROR and the exception propagates.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        warn_after_ms: float = 5_000.0,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.warn_after_ms = warn_after_ms
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation}_failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
            )
            return

        log_method = self.logger.warning if duration_ms > self.warn_after_ms else self.logger.debug
        log_method(
            f"{self.operation}_completed",
            operation=self.operation,
            duration_ms=duration_ms,
        )


def set_request_id(request_id: str) -> None:
    """Bind ``request_id`` to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_id() -> None:
    structlog.contextvars.unbind_contextvars("request_id")


# Reconfigured by main.py from the environment at import time.
configure_logging()
