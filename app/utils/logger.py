"""
Centralized Logging Utility with Structured Logging Support

Provides JSON-formatted logging stamped with the active telemetry session id,
log rotation, and a plain-text format for interactive use.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from pathlib import Path
import uuid


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class SessionContextFilter(logging.Filter):
    """Stamp every record with the id of the telemetry session being analysed."""

    def __init__(self, session_id: Optional[str] = None):
        super().__init__()
        self.session_id = session_id or str(uuid.uuid4())

    def filter(self, record: logging.LogRecord) -> bool:
        """Add session id to record."""
        if not hasattr(record, "session_id"):
            record.session_id = self.session_id
        return True


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    enable_console: bool = True,
) -> None:
    """
    Setup centralized logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type ('json' or 'text')
        log_file: Optional file path for log output
        enable_console: Whether to enable console output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()

    if log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(session_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(SessionContextFilter())
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(SessionContextFilter())
        root_logger.addHandler(file_handler)


def get_logger(name: str, extra_data: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Get a logger instance with optional extra data.

    Args:
        name: Logger name (typically __name__)
        extra_data: Optional dictionary of extra fields to include in logs

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if extra_data:
        logger = logging.LoggerAdapter(logger, {"extra_data": extra_data})

    return logger


def bind_session_id(session_id: str) -> None:
    """
    Set the session id stamped on records by the root handlers.

    Args:
        session_id: Identifier of the telemetry session being analysed
    """
    for handler in logging.getLogger().handlers:
        for filter_obj in handler.filters:
            if isinstance(filter_obj, SessionContextFilter):
                filter_obj.session_id = session_id
