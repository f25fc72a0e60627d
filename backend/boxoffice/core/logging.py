"""
Structured logging configuration using structlog.

Every event is a snake_case name plus key/value context, rendered as JSON in
production and for the console elsewhere. Request ids come in through
contextvars bound by the request middleware.

Checkout data passes through the logs: session tokens are shortened and
payment confirmations masked before any renderer sees them.
"""

import logging
import sys

import structlog

from boxoffice.core.config import get_settings

MASKED_KEYS = {"payment_confirmation", "authorization"}
SHORTENED_KEYS = {"session_token"}

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "asyncio": logging.WARNING,
}


def redact_checkout_secrets(logger, method_name, event_dict):
    for key in MASKED_KEYS & event_dict.keys():
        event_dict[key] = "***"
    for key in SHORTENED_KEYS & event_dict.keys():
        value = str(event_dict[key])
        if len(value) > 8:
            event_dict[key] = value[:6] + "…"
    return event_dict


def add_service_context(logger, method_name, event_dict):
    settings = get_settings()
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def setup_logging() -> None:
    settings = get_settings()
    production = settings.ENVIRONMENT == "production"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_checkout_secrets,
    ]
    if production:
        shared_processors += [add_service_context, structlog.processors.format_exc_info]
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # Records from plain stdlib loggers (uvicorn, sqlalchemy) get the same treatment
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, structlog.stdlib.ProcessorFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
