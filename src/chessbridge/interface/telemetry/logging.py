from __future__ import annotations

from typing import Any, TextIO
import logging
import sys
import structlog


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: int | str = "INFO",
    *,
    stream: TextIO | None = None,
    json_output: bool = True,
) -> None:
    """Configure structlog for JSON (or console) logging with trace IDs.

    The UCI command line passes ``sys.stderr`` so that stdout carries protocol
    lines only.
    """
    target = stream or sys.stdout
    min_level = _resolve_level(level)
    logging.basicConfig(format="%(message)s", level=min_level, stream=target, force=True)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None):
    """Return a structlog logger bound to the provided name."""
    return structlog.get_logger(name or "chessbridge")


def bind_trace(logger: Any, trace_id: str | None = None, **kwargs) -> Any:
    """Attach trace metadata to a logger for request correlation."""
    context = {"trace_id": trace_id} if trace_id else {}
    context.update(kwargs)
    return logger.bind(**context)


__all__ = ["bind_trace", "get_logger", "setup_logging"]
