"""structlog configuration.

Every module logs through `structlog.get_logger()` with an event name and
key/value context. Request IDs are merged in from contextvars.
"""

import logging
import sys

import structlog


def configure_logging(json_output: bool = True, level: int = logging.INFO) -> None:
    """Configure stdlib logging and structlog once at startup."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
