"""Logging setup for hostrunner."""

import logging
import sys

import structlog

BASE_LOGGER_NAME = "hostrunner"


def setup_logging(level: int = logging.WARNING, json_logs: bool = False) -> None:
    """Configures structlog for the entire application.

    Log records go to stderr so they never interleave with the console
    output written to stdout.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=shared_processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if json_logs:
        final_renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        final_renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(processor=final_renderer)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    structlog.get_logger(BASE_LOGGER_NAME).debug(
        "Logging configured", level=logging.getLevelName(level), json=json_logs
    )


def resolve_level(log_level: str | None, debug: bool) -> int:
    """Map a --log-level name to a numeric level; --debug implies DEBUG."""
    if log_level:
        numeric_level = logging.getLevelName(log_level.upper())
        if isinstance(numeric_level, int):
            return numeric_level
    return logging.DEBUG if debug else logging.WARNING
