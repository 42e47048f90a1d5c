"""
Structured logging configuration.

Pipeline log lines carry a "[session=...] [graph=...] [node=...] " prefix.
The JSON formatter lifts those tags into fields, so log aggregators can
filter one research run without parsing message text.
"""

import json
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


# Leading "[key=value] " tags written by the nodes and API handlers
_CONTEXT_TAG = re.compile(r"^\[(session|graph|node|api)=([^\]]*)\]\s*")


def split_context(message: str) -> Tuple[Dict[str, str], str]:
    """
    Split leading context tags from a log message.

    "[session=abc] [node=planning] Plan ready" gives
    ({"session": "abc", "node": "planning"}, "Plan ready").
    """
    context: Dict[str, str] = {}
    match = _CONTEXT_TAG.match(message)
    while match:
        context[match.group(1)] = match.group(2)
        message = message[match.end():]
        match = _CONTEXT_TAG.match(message)
    return context, message


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs log records as one JSON object per line.

    Fields: timestamp, level, logger, message, context (session/graph/node/api
    tags from the message prefix, when present), extra (set by
    log_stage_transition) and exception.
    """

    def format(self, record: logging.LogRecord) -> str:
        context, message = split_context(record.getMessage())
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        if context:
            log_entry["context"] = context

        if hasattr(record, "extra"):
            log_entry["extra"] = record.extra

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    logger_name: str = "deep_research",
) -> logging.Logger:
    """
    Route a logger tree to JSON lines on stdout and, optionally, a file.

    The logger stops propagating to the root so records are not printed
    twice by the plain-text basicConfig handler.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path to an additional JSON lines file
        logger_name: Root of the logger tree to configure

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    formatter = StructuredFormatter()
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def summarize_state(state: Dict[str, Any]) -> Dict[str, Any]:
    """Counters describing how far a research run has progressed."""
    plan = state.get("plan") or {}
    vertical_status = Counter(v.get("status", "pending") for v in plan.get("verticals", []))
    section_status = Counter(s.get("status", "pending") for s in state.get("sections") or [])
    return {
        "session_id": state.get("session_id"),
        "current_stage": state.get("current_stage"),
        "verticals": sum(vertical_status.values()),
        "vertical_status": dict(vertical_status),
        "vertical_results": len(state.get("vertical_results") or []),
        "sections": sum(section_status.values()),
        "section_status": dict(section_status),
        "errors": len(state.get("errors") or []),
    }


def log_stage_transition(
    event: str,
    state: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a research pipeline stage transition with a state summary.

    Args:
        event: Name of the event (e.g., "planning_complete", "research_complete")
        state: Current research state
        extra: Additional context to include in the log
        logger: Logger instance to use. If not provided, uses "deep_research".
    """
    if logger is None:
        logger = logging.getLogger("deep_research")

    log_data: Dict[str, Any] = {"event": event, "state_summary": summarize_state(state)}
    if extra:
        log_data["extra"] = extra

    prefix = f"[session={state.get('session_id')}] [graph=research] " if state.get("session_id") else ""
    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        "",
        0,
        f"{prefix}Stage transition: {event}",
        args=(),
        exc_info=None,
    )
    record.extra = log_data
    logger.handle(record)
