"""Logging setup — structlog rendered through stdlib logging on stderr."""

from __future__ import annotations

import logging
import logging.config
import os
import sys

import structlog

DEFAULT_LEVEL = "WARNING"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(level: str | None = None) -> None:
    """Route mpr's internal events to stderr.

    Reads from environment variables:
        MPR_LOG_LEVEL  — level name (default: WARNING)
        MPR_LOG_FORMAT — console | json (default: console)

    *level* wins over ``MPR_LOG_LEVEL``; the CLI passes ``DEBUG`` for -v.
    stdout is left to the tagged command output.
    """
    log_level = (level or os.environ.get("MPR_LOG_LEVEL") or DEFAULT_LEVEL).upper()
    log_format = os.environ.get("MPR_LOG_FORMAT", "console").lower()
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "mpr": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(log_format),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "mpr",
                },
            },
            "root": {"handlers": ["stderr"], "level": "WARNING"},
            "loggers": {
                "mpr": {"level": log_level},
            },
        }
    )
