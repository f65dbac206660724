"""
utils/logging.py — structlog setup shared by the CLI and the pipelines.

Output is JSON lines (settings.log_format == "json") or the coloured
console renderer. Events are snake_case verbs with keyword context:

    log.info("overlay_merged", overlaid=3120, buildings_total=40877)

Usage:
    from nycdata_pipeline.utils.logging import configure_logging, get_logger, pipeline_context

    configure_logging(log_level="DEBUG")
    log = get_logger(__name__, pipeline="housing")

    with pipeline_context("housing", dry_run=True):
        ...   # every event logged in here carries pipeline= and dry_run=
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from nycdata_shared.config import settings

_configured = False


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Install the structlog processor chain.

    A call without arguments after the first configuration is a no-op, so a
    level chosen on the command line survives the pipeline's own call.
    """
    global _configured
    if _configured and log_level is None and log_format is None:
        return

    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    renderer: Any
    if (log_format or settings.log_format) == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """Logger for module `name`, pre-bound with initial_values."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger  # type: ignore[return-value]


@contextmanager
def pipeline_context(pipeline: str, **context: Any) -> Iterator[None]:
    """Bind pipeline= (plus context) to every event logged inside the block, from any module."""
    with structlog.contextvars.bound_contextvars(pipeline=pipeline, **context):
        yield
