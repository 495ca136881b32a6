"""
Structured Logging Configuration Module

JSON log lines for treasury operations. Each record can carry the caller,
the action, the resource it touched and the logical time it happened at,
alongside the wall-clock timestamp of the log line itself.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Record attributes copied into the structured payload when present
STRUCTURED_FIELDS = ("correlation_id", "user_id", "action", "resource", "logical_time", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object"""

    def format(self, record):
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "treasury",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the treasury logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Root of the logger hierarchy to configure
        log_format: "json" for structured lines, "text" for plain lines
        log_file: Append to this file instead of writing to stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "treasury") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               logical_time: Optional[int] = None, extra: Optional[dict] = None):
    """
    Log a treasury action with structured fields.

    Args:
        logger: Logger instance
        level: Log level name (info, warning, ...)
        message: Human-readable message
        user_id: Caller performing the action
        action: Operation name, e.g. ``deposit``
        resource: Kind of record acted on, e.g. ``account``
        correlation_id: Identifier tying related lines together
        logical_time: Ledger time of the action
        extra: Additional structured data
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(logger.name, levelno, __name__, 0, message, (), None)
    fields = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "logical_time": logical_time,
        "extra": extra or None,
    }
    for name, value in fields.items():
        if value is not None:
            setattr(record, name, value)

    logger.handle(record)
