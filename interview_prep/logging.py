"""Structured logging for the service, the CLI and the test suite.

Production output is one JSON object per line::

    {"message": "retry.attempt.failed", "context": "service", "logger": "...",
     "level": "warning", "timestamp": "...", "extra": {"task": "...", "correlation_id": "1a2b3c4d"}}

Tests and the CLI get a short terminal line instead::

    14:02:11 [WARNING] llm.streaming: retry.attempt.failed [task=Curriculum Analysis, attempt=1] [id:1a2b3c4d]

Whatever is bound with ``bind_context_vars`` (the server binds a per-request
``correlation_id`` and ``action``, the controller a per-run ``correlation_id``)
travels with every record under ``extra``.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

PACKAGE_PREFIX = "interview_prep"
SERVICE_CONTEXT = "service"
DEFAULT_LEVEL = "INFO"
MAX_VALUE_LENGTH = 60
SHORT_ID_LENGTH = 8

_TOP_LEVEL_FIELDS = ("timestamp", "level", "logger", "context")


def _nest_extra_fields(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Rename structlog's ``event`` to ``message`` and move every non-standard key under ``extra``."""
    record: EventDict = {
        "message": event_dict.pop("event", ""),
        "context": event_dict.pop("context", SERVICE_CONTEXT),
    }
    for key in _TOP_LEVEL_FIELDS:
        if key in event_dict:
            record[key] = event_dict.pop(key)
    if event_dict:
        record["extra"] = dict(event_dict)
    return record


# --- Terminal rendering ---


def short_logger_name(name: str) -> str:
    """``interview_prep.stages.audit`` -> ``stages.audit``; foreign names are left alone."""
    if not name.startswith(PACKAGE_PREFIX):
        return name
    parts = [part for part in name[len(PACKAGE_PREFIX) :].split(".") if part]
    return ".".join(parts[-2:]) or name


def _clip(value: Any) -> str:
    text = str(value)
    return text if len(text) <= MAX_VALUE_LENGTH else f"{text[: MAX_VALUE_LENGTH - 3]}..."


def _clock(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
    except ValueError:
        return ""


def render_terminal_line(_: WrappedLogger, __: str, event_dict: EventDict) -> str:
    extra = dict(event_dict.get("extra", {}))
    correlation_id = str(extra.pop("correlation_id", ""))

    line = (
        f"{_clock(event_dict.get('timestamp', ''))} [{str(event_dict.get('level', 'info')).upper()}] "
        f"{short_logger_name(event_dict.get('logger', ''))}: {event_dict.get('message', '')}"
    )
    if extra:
        line += " [" + ", ".join(f"{key}={_clip(value)}" for key, value in extra.items()) + "]"
    if correlation_id:
        line += f" [id:{correlation_id[:SHORT_ID_LENGTH]}]"
    return line


# --- Setup ---


def configure_structlog(testing: bool = False, level_name: str | None = None) -> None:
    """Route structlog through stdlib logging at ``level_name`` (default: ``LOGGING_LEVEL`` env, then INFO).

    ``testing=True`` switches the renderer from JSON to ``render_terminal_line``.
    Unknown level names fall back to INFO.
    """
    name = (level_name or os.environ.get("LOGGING_LEVEL") or DEFAULT_LEVEL).upper()
    level = logging.getLevelNamesMapping().get(name, logging.INFO)

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout)
    logging.getLogger().setLevel(level)

    renderer: Processor = render_terminal_line if testing else structlog.processors.JSONRenderer(ensure_ascii=False)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.contextvars.merge_contextvars,
            _nest_extra_fields,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def bind_context_vars(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context_vars(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context_fields() -> None:
    structlog.contextvars.clear_contextvars()


def get_context_vars() -> dict[str, Any]:
    return structlog.contextvars.get_contextvars()


def get_logger(name: str = "") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or PACKAGE_PREFIX)  # type: ignore[no-any-return]
