"""
Structured logging via structlog.

Agent events are logged as an event name plus keyword fields, and runs bind
`thread_id` through structlog's contextvars so every line of one turn can be
grouped:

    from shopbot.core.logging import get_logger
    log = get_logger(__name__)
    log.info("lookup_semantic", query=query, count=3)

Development renders colored console lines; every other environment renders
JSON. Chatty client libraries (httpx, openai, LiteLLM) are held at WARNING so
their request logs don't drown the agent's own events.
"""

import logging
import sys

import structlog

_QUIET_LIBRARIES = ("httpx", "httpcore", "openai", "LiteLLM", "psycopg.pool")


def configure_logging(environment: str | None = None) -> None:
    """Configure structlog processors. Call once at application startup."""
    if environment is None:
        from shopbot.core.config import get_settings

        environment = get_settings().environment
    is_dev = environment == "development"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if is_dev:
        renderer = [structlog.dev.ConsoleRenderer()]
    else:
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if is_dev else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__):
    return structlog.get_logger(name)
