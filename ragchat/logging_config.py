"""
Logging configuration for the chat backend.
Uses structlog for structured key/value logging.
"""

import structlog
import logging
import sys

from .config import LOG_LEVEL, LOG_JSON

# HTTP clients used for the model and embedding calls log every request at INFO
_CHATTY_LOGGERS = ("httpx", "openai", "aiohttp.client")


def setup_logging(log_level: str = "INFO", json_logs: bool = False):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: If True, output JSON. If False, use pretty console output.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Standard logging carries uvicorn/sqlalchemy output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )
    if numeric_level > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    return structlog.get_logger()


# LOG_JSON=true in production, console output otherwise
logger = setup_logging(log_level=LOG_LEVEL, json_logs=LOG_JSON)
