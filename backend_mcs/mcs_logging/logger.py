"""
Structured logging for the scoring engine.

Every line carries event_type, level, logger and an ISO UTC timestamp. Lines
emitted while a user is being scored also carry user_id and the pipeline
stage (portfolio, analysis, scoring), bound once per score through
scoring_context() instead of being passed to every call.

Depends only on stdlib logging and structlog; no backend_mcs imports so any
module may import it first.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json for services, console for local runs
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; mirror it into message when absent."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _plain_values(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Sub-scores are Decimal and platforms/severities are enums; log them as plain JSON values."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = float(value)
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def configure_structlog(log_format: str | None = None, level: int | None = None) -> None:
    """Install the processor chain; LOG_FORMAT and LOG_LEVEL are the defaults."""
    renderer: Any
    if (log_format or LOG_FORMAT).strip().lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.format_exc_info,
            _plain_values,
            _normalize_event,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE if level is None else level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("score_calculated", score=712, category="Good")

    JSON output inside scoring_context("u1"): {"event_type": "score_calculated",
    "user_id": "u1", "stage": "scoring", "score": 712, "category": "Good",
    "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    return structlog.get_logger(name).bind(logger=name)


@contextmanager
def scoring_context(user_id: str, stage: str = "portfolio") -> Iterator[None]:
    """
    Bind user_id and stage to every log line emitted inside the block.

    Bindings live in contextvars, so concurrently scored users (one asyncio
    task each) never see each other's ids. Previous values are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(user_id=user_id, stage=stage):
        yield


def set_stage(stage: str) -> None:
    """Move the current scoring_context to the next pipeline stage."""
    structlog.contextvars.bind_contextvars(stage=stage)
