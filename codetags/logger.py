"""Structured logging utility for codetags.

Provides JSON-formatted logging with context and the exception taxonomy used
across the sync engine.
"""
import logging
import json
import os
import sys
import traceback
from typing import Any, Dict, Optional
from datetime import datetime, timezone

# Configure root logger with LOG_LEVEL from environment
_log_level_str = os.environ.get("LOG_LEVEL", "INFO").upper()
_log_level = getattr(logging, _log_level_str, logging.INFO)
# LOG_FORMAT=json switches every codetags logger to one JSON object per line
_json_default = os.environ.get("LOG_FORMAT", "").strip().lower() == "json"
logging.basicConfig(
    level=_log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stderr)]
)

# Cache loggers to avoid repeated lookups
_logger_cache: Dict[str, logging.Logger] = {}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    __slots__ = ()

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        extra = getattr(record, 'extra_fields', None)
        if extra:
            log_data.update(extra)

        return json.dumps(log_data, default=str)


def get_logger(name: str, json_format: Optional[bool] = None) -> logging.Logger:
    """Get a logger instance with optional JSON formatting.

    Args:
        name: Logger name (typically __name__)
        json_format: If True, use JSON formatter; None follows LOG_FORMAT

    Returns:
        Configured logger instance
    """
    if json_format is None:
        json_format = _json_default
    cache_key = f"{name}:{json_format}"
    if cache_key in _logger_cache:
        return _logger_cache[cache_key]

    logger = logging.getLogger(name)
    logger.setLevel(_log_level)

    if json_format and not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    _logger_cache[cache_key] = logger
    return logger


class ContextLogger:
    """Logger wrapper that adds context fields to all log messages.

    Messages accept ``%``-style args like the stdlib logger; the context
    (for instance ``repo=<name>``) is prefixed to the rendered message and
    also attached to the record as ``extra_fields`` for the JSON formatter.
    """

    __slots__ = ('logger', 'context', '_prefix')

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context
        self._prefix = " ".join(f"[{k}={v}]" for k, v in context.items())

    def _log(self, level: int, msg: str, args: tuple, exc_info: Any = None, **extra):
        if not self.logger.isEnabledFor(level):
            return
        merged = {**self.context, **extra} if extra else self.context
        if self._prefix:
            msg = f"{self._prefix} {msg}"
        record = self.logger.makeRecord(
            self.logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info,
        )
        record.extra_fields = merged
        self.logger.handle(record)

    def debug(self, msg: str, *args, **extra):
        self._log(logging.DEBUG, msg, args, **extra)

    def info(self, msg: str, *args, **extra):
        self._log(logging.INFO, msg, args, **extra)

    def warning(self, msg: str, *args, exc_info: Any = None, **extra):
        self._log(logging.WARNING, msg, args, exc_info=exc_info, **extra)

    def error(self, msg: str, *args, exc_info: Any = None, **extra):
        self._log(logging.ERROR, msg, args, exc_info=exc_info, **extra)

    def exception(self, msg: str, *args, **extra):
        """Log an exception with traceback."""
        self._log(logging.ERROR, msg, args, exc_info=sys.exc_info(), **extra)

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)


# Exception taxonomy for codetags
class CodetagsError(Exception):
    """Base exception for all codetags errors."""
    pass


class TransientIOError(CodetagsError):
    """File vanished or became unreadable between notification and access."""
    pass


class WatchRegistrationError(CodetagsError):
    """A directory watch could not be registered (limits, races)."""
    pass


class MalformedPatternError(CodetagsError):
    """An ignore pattern could not be compiled; it never matches."""
    pass


class ArtifactWriteError(CodetagsError):
    """The summary artifact could not be written."""
    pass


class SupervisorStartupError(CodetagsError):
    """The notification facility for a repository or the supervisor failed to start."""
    pass


class RegistrationError(CodetagsError):
    """Invalid registration store input."""
    pass


def safe_float(value: Any, default: float, logger: Optional[logging.Logger] = None, context: str = "") -> float:
    """Safely convert value to float with logging on failure.

    Args:
        value: Value to convert
        default: Default value if conversion fails
        logger: Optional logger for warnings
        context: Context string for log message

    Returns:
        Converted float or default
    """
    try:
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return default
        return float(value)
    except (ValueError, TypeError) as e:
        if logger:
            logger.warning(f"Failed to convert {context} to float: {value}", exc_info=e)
        return default


def safe_bool(value: Any, default: bool, logger: Optional[logging.Logger] = None, context: str = "") -> bool:
    """Safely convert value to bool with logging on failure.

    Args:
        value: Value to convert
        default: Default value if conversion fails
        logger: Optional logger for warnings
        context: Context string for log message

    Returns:
        Converted bool or default
    """
    try:
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return default
        if isinstance(value, bool):
            return value
        s = str(value).strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off"}:
            return False
        if logger:
            logger.warning(f"Unrecognized boolean for {context}: {value}")
        return default
    except (ValueError, TypeError) as e:
        if logger:
            logger.warning(f"Failed to convert {context} to bool: {value}", exc_info=e)
        return default
