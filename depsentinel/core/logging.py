"""structlog setup for the CLI and for embedding applications.

Environment:
    DEPSENTINEL_LOG_LEVEL   default INFO
    DEPSENTINEL_LOG_FORMAT  console | json, default console
"""

from __future__ import annotations

import logging
import logging.config
import os
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

_QUIET_LIBRARIES = ("httpx", "httpcore")


def _processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Route structlog through stdlib logging, rendering to stderr.

    Explicit arguments win over the environment. stdout is left to the
    CLI's own output so ``check --json`` stays machine-readable.
    """
    level = (level or os.environ.get("DEPSENTINEL_LOG_LEVEL", "INFO")).upper()
    log_format = (log_format or os.environ.get("DEPSENTINEL_LOG_FORMAT", "console")).lower()
    shared = _processors()

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "depsentinel": {
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
                    "formatter": "depsentinel",
                },
            },
            "root": {"handlers": ["stderr"], "level": level},
            "loggers": {
                "depsentinel": {"level": level},
                **{name: {"level": "WARNING"} for name in _QUIET_LIBRARIES},
            },
        }
    )


@contextmanager
def request_context(**fields: object) -> Iterator[None]:
    """Attach *fields* (dependency, package_manager, ...) to every event in the block."""
    structlog.contextvars.bind_contextvars(**fields)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*fields)
