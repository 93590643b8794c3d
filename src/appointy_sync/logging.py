"""structlog setup for the feed service and scripts.

Everything goes to stderr so the scripts can keep stdout for their output
(tables, JSON). Event names are snake_case with key/value context:

    log.info("feed_served", cache="HIT", refresh=False)

Values under credential-like keys are masked before rendering.
"""

import logging
import sys

import structlog

REDACTED = "***"
SECRET_KEYS = frozenset(
    {
        "password",
        "appointy_password",
        "token",
        "calendar_token",
        "upstash_redis_rest_token",
        "authorization",
    }
)

# Loggers from libraries that are chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "urllib3", "asyncio")


def redact_secrets(_logger, _method_name: str, event_dict: dict) -> dict:
    """structlog processor: mask values of credential-like keys."""
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_output: JSON lines (deployed service) instead of console format.
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.dev.set_exc_info,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # uvicorn and playwright log through stdlib
    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(sys.stderr)]
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.BoundLogger:
    """Logger bound to a module name (pass ``__name__``)."""
    return structlog.get_logger(name)
