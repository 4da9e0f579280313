"""structlog setup shared by the ASGI app and the CLI."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

_QUIET_LOGGERS = ("uvicorn.access",)


def _module_field(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Report the emitting module under 'module' rather than 'logger'."""
    name = event_dict.pop("logger", None)
    if name:
        event_dict["module"] = name
    return event_dict


def _processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _module_field,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def setup_logging(log_level: str = "info", json_format: bool = True, stream: TextIO | None = None) -> None:
    """Route structlog through stdlib logging with JSON or console rendering.

    Logs go to stderr by default so CLI output on stdout stays parseable.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
