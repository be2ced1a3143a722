"""
FullFeed Logging Configuration
==============================

Logging for the proxy: JSON records for files and log shippers, a compact
colored console format for development, and logger adapters that carry
request context (component, source feed URL, item URL) through the
pipeline.

Components never log through a module-level global: each one receives a
``LoggerAdapter`` in its constructor (defaulting to
``get_logger_for_component``) so the feed URL of the current request can be
bound with ``bind_context``.
"""

import logging
import logging.handlers
import sys
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional

# Attributes every LogRecord has; anything else arrived through ``extra``
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}

# Context promoted to top-level keys of a JSON record
CONTEXT_FIELDS = ("component", "feed_url", "item_url", "error_code")

# Libraries whose INFO chatter drowns out per-item logs
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "feedparser", "readability", "chardet")


class StructuredFormatter(logging.Formatter):
    """JSON formatter with request context as top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields = {
            k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES
        }
        for field in CONTEXT_FIELDS:
            value = extra_fields.pop(field, None)
            if value is not None:
                log_data[field] = value

        if extra_fields:
            log_data["extra"] = extra_fields

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored single-line console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        component = getattr(record, "component", None) or record.name

        formatted = (
            f"{color}[{timestamp}] {record.levelname:8}{reset} "
            f"{component} - {record.getMessage()}"
        )

        # the item is more specific than the feed it came from
        url = getattr(record, "item_url", None) or getattr(record, "feed_url", None)
        if url:
            formatted += f" ({url})"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logger(
    name: str = "fullfeed",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Set up logger with appropriate handlers and formatting.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        console: Whether to log to the console (stderr, so CLI output on
            stdout stays machine readable)
        structured: Whether the console uses structured JSON logging
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)

        if structured:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ColoredConsoleFormatter())

        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )

        # Always use structured format for file logging
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter merging bound request context into every record."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        # explicit extra wins over bound context
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind_context(self, **context: Any) -> "LoggerAdapter":
        """Return a new adapter carrying this adapter's context plus ``context``."""
        merged = dict(self.extra)
        merged.update({k: v for k, v in context.items() if v is not None})
        return LoggerAdapter(self.logger, merged)


def get_logger_for_component(
    component_name: str,
    feed_url: Optional[str] = None,
    item_url: Optional[str] = None,
) -> LoggerAdapter:
    """Get a logger adapter with component-specific context.

    Args:
        component_name: Name of the component (e.g., 'registry', 'feed_assembler')
        feed_url: Source feed URL being processed (optional)
        item_url: Item URL being extracted (optional)

    Returns:
        Logger adapter with context
    """
    base_logger = logging.getLogger(f"fullfeed.{component_name}")
    return LoggerAdapter(base_logger, {"component": component_name}).bind_context(
        feed_url=feed_url, item_url=item_url
    )


def configure_application_logging(logging_settings, log_level: Optional[str] = None) -> None:
    """Configure application-wide logging from ``LoggingSettings``.

    Args:
        logging_settings: The ``logging`` section of FullFeedSettings
        log_level: Level overriding the configured one (e.g. for --debug)
    """
    level = log_level or logging_settings.level
    setup_logger(
        name="fullfeed",
        level=getattr(level, "value", level),
        log_file=logging_settings.file_path,
        console=logging_settings.console_logging,
        structured=logging_settings.structured_logging,
        max_file_size=logging_settings.max_file_size_mb * 1024 * 1024,
        backup_count=logging_settings.backup_count,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class PerformanceLogger:
    """Context manager timing a pipeline stage.

    Completion is logged at INFO, or at WARNING when it took longer than
    ``slow_after`` seconds. Failures are logged at ERROR and re-raised.
    """

    def __init__(self, logger, operation: str, slow_after: Optional[float] = None, **kwargs):
        """Initialize performance logger.

        Args:
            logger: Logger or LoggerAdapter
            operation: Operation being timed
            slow_after: Duration in seconds above which completion is a warning
            **kwargs: Additional context for the operation
        """
        self.logger = logger
        self.operation = operation
        self.slow_after = slow_after
        self.context = kwargs
        self.started: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.started is None:
            return

        self.duration = time.perf_counter() - self.started
        context = {
            **self.context,
            "duration_seconds": round(self.duration, 3),
            "success": exc_type is None,
        }

        if exc_type:
            self.logger.error(
                f"Failed {self.operation} in {self.duration:.3f}s: {exc_val}", extra=context
            )
        elif self.slow_after is not None and self.duration > self.slow_after:
            self.logger.warning(
                f"Slow {self.operation}: {self.duration:.3f}s (over {self.slow_after}s)",
                extra=context,
            )
        else:
            self.logger.info(
                f"Completed {self.operation} in {self.duration:.3f}s", extra=context
            )
