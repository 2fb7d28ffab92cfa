"""
RiskScope log output: one JSON object per line on stderr.

Every event carries event_type, level, logger, and an ISO-8601 UTC timestamp.
Report code binds the analyzed handle as `subject` (bind_subject), so one
report run can be followed from fetch to assembly. stdout stays free for the
CLI's report JSON.

LOG_LEVEL picks the threshold; LOG_FORMAT=console switches to the colored dev
renderer. This module imports nothing from backend_riskscope.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def rename_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's 'event' key becomes event_type; message mirrors it unless given."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    event_dict.setdefault("message", str(event_dict.get("event_type", "")))
    return event_dict


def configure_structlog() -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        rename_event,
    ]
    if LOG_FORMAT == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger. Pass a snake_case event name first, then context:

        get_logger(__name__).info("report_assembled", subject="cryptoking", risk_score=72)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_subject(handle: str, name: str = "backend_riskscope") -> structlog.BoundLogger:
    """Logger with subject=handle on every event, for one report run."""
    return get_logger(name).bind(subject=handle)
