"""structlog wiring for the auction engine.

Bid, settlement and scheduler code log through ``structlog.get_logger``
with event names such as ``bid_placed`` or ``round_settled``. The stdlib
root logger is routed through the same renderer, so SQLAlchemy and alembic
output lands in one stream, one JSON object per line in production.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Quiet unless running at DEBUG; the engine logger echoes every statement.
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic.runtime.migration", "asyncio")

_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Install the auction log pipeline on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            unknown names fall back to INFO.
        log_format: "json" for the scheduler process, "console" for local runs.

    Calling it again replaces the previous handler, so the scheduler and
    tests can reconfigure freely.
    """
    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(log_format)],
        )
    )

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str | None = None, **initial_context) -> structlog.stdlib.BoundLogger:
    """Logger for one engine component, e.g. ``get_logger("settlement", auction_id=7)``."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger


def bound_round(auction_id: int, round_number: int):
    """Context manager tagging every log line inside it with the round being worked on."""
    return structlog.contextvars.bound_contextvars(auction_id=auction_id, round_number=round_number)
