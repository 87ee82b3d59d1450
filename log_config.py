"""Structured logging configuration: structlog on top of stdlib logging."""

import logging
import logging.config
import os

import structlog


def setup_logging(level: str = None, fmt: str = None) -> None:
    """Configure structlog and stdlib logging.

    Reads from environment variables unless overridden:
        CONTRIB_LOG_LEVEL  - log level (default: INFO)
        CONTRIB_LOG_FORMAT - console | json (default: console)
    """
    log_level = (level or os.environ.get("CONTRIB_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.environ.get("CONTRIB_LOG_FORMAT", "console")).lower()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # logs go to stderr so rendered reports on stdout stay clean
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            "loggers": {
                "contrib_stats": {"level": log_level},
                "urllib3": {"level": "WARNING"},
            },
        }
    )


def use_stdlib_default() -> None:
    """Route structlog through stdlib logging until setup_logging runs.

    Without this, structlog's default logger prints every event to stdout,
    mixing log lines into rendered reports when the engine is used as a library.
    Stdlib's last-resort handler then only emits warnings and errors, on stderr.
    """
    if structlog.is_configured():
        return
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
