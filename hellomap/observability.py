"""
Observability Module - Logging

Provides:
- Structured JSON logging for CI runs
- Human-readable text logging for local use
- A logger adapter that accepts context fields as keyword arguments

Configuration:
- HELLOMAP_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- HELLOMAP_LOG_FORMAT: json, text (default: json under GitHub Actions)
- GITHUB_RUN_ID: attached to every record as run_id when present

Usage:
    from hellomap.observability import get_logger

    logger = get_logger(__name__)
    logger.info("Claim applied", user="octocat", iso="US")
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

# Context variable for the automation run being processed
run_id_var: ContextVar[str] = ContextVar("run_id", default="")


# ============================================================
# CONFIGURATION
# ============================================================

def _is_ci() -> bool:
    return os.environ.get("GITHUB_ACTIONS", "").lower() in ("1", "true", "yes")


def _get_log_level() -> int:
    level_str = os.environ.get("HELLOMAP_LOG_LEVEL", "INFO").upper()
    levels = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return levels.get(level_str, logging.INFO)


def _use_json_logging() -> bool:
    format_str = os.environ.get("HELLOMAP_LOG_FORMAT", "").lower()
    if format_str == "json":
        return True
    if format_str == "text":
        return False
    return _is_ci()


# Standard LogRecord attributes that are not context fields
_RESERVED = frozenset((
    "name", "msg", "args", "created", "levelname", "levelno",
    "pathname", "filename", "module", "lineno", "funcName",
    "exc_info", "exc_text", "stack_info", "message", "msecs",
    "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName",
))


def _context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED or key.startswith("_"):
            continue
        fields[key] = value
    return fields


# ============================================================
# STRUCTURED LOGGING
# ============================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.000000+00:00",
        "level": "INFO",
        "logger": "hellomap.core.ledger",
        "message": "Claim applied",
        "run_id": "123456789",
        ...extra fields...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in _context_fields(record).items():
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = ""
        run_id = run_id_var.get()
        if run_id:
            prefix = f"[{run_id}] "

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        msg = f"{timestamp} {record.levelname:8} {prefix}{record.name}: {record.getMessage()}"

        fields = _context_fields(record)
        if fields:
            msg += " " + " ".join(f"{k}={v}" for k, v in fields.items())

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that turns keyword arguments into context fields.

    Usage:
        logger = get_logger(__name__)
        logger.info("No-op claim", user="octocat", reason="quota")
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                extra[key] = kwargs.pop(key)

        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a structured logger for the given name.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextLogger(logging.getLogger(name), {})


def setup_logging() -> None:
    """
    Configure logging for a CLI run.

    Call this once at process startup.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_get_log_level())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())

    if _use_json_logging():
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger.addHandler(handler)

    run_id = os.environ.get("GITHUB_RUN_ID", "")
    if run_id:
        run_id_var.set(run_id)
