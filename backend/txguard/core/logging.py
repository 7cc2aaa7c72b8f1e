"""
Centralized logging system with structured JSON output.
"""
from __future__ import annotations
import json
import logging
import logging.handlers
import queue
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs with correlation IDs.
    """

    # Correlation fields copied from the record when set via ``extra``
    context_fields = (
        'trace_id', 'review_id', 'chain_id', 'origin', 'query_kind'
    )

    sensitive_patterns = (
        'key', 'secret', 'token', 'password', 'passphrase',
        'private', 'mnemonic', 'seed', 'signature', 'app_id'
    )

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as structured JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": getattr(record, 'module', record.name),
        }

        for field in self.context_fields:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, 'extra_data', None)
        if extra_data is not None and isinstance(extra_data, dict):
            log_data.update({
                k: self._redact_sensitive(k, v)
                for k, v in extra_data.items()
            })

        return json.dumps(log_data, default=str, separators=(',', ':'))

    def _redact_sensitive(self, key: str, value: Any) -> Any:
        """
        Redact sensitive information from log values.

        Args:
            key: Field name
            value: Field value

        Returns:
            Redacted value if sensitive, original value otherwise
        """
        if any(pattern in key.lower() for pattern in self.sensitive_patterns):
            return "[REDACTED]"
        return value


# Global variable to store the queue listener
_queue_listener: Optional[logging.handlers.QueueListener] = None


def setup_logging(
    log_level: str = "INFO",
    debug: bool = False,
    environment: str = "development",
    log_dir: Union[str, Path] = "data/logs",
) -> None:
    """
    Set up centralized logging system with structured JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        debug: Enable console output
        environment: Environment name for logging context
        log_dir: Directory for the rotating JSONL files

    Creates two log files:
    - app.jsonl: All log levels, rotated at midnight
    - errors.jsonl: ERROR and above only
    """
    global _queue_listener

    cleanup_logging()

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    formatter = StructuredFormatter()
    log_queue: queue.Queue = queue.Queue(-1)

    app_handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_path / "app.jsonl"),
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8',
        utc=True
    )
    app_handler.setFormatter(formatter)
    app_handler.setLevel(logging.DEBUG)

    error_handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_path / "errors.jsonl"),
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8',
        utc=True
    )
    error_handler.setFormatter(formatter)
    error_handler.setLevel(logging.ERROR)

    # File writes happen on the listener thread
    root_logger.addHandler(logging.handlers.QueueHandler(log_queue))
    _queue_listener = logging.handlers.QueueListener(
        log_queue, app_handler, error_handler, respect_handler_level=True
    )
    _queue_listener.start()

    if debug:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        console_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info("Logging system initialized", extra={
        'extra_data': {
            'log_level': log_level,
            'debug': debug,
            'environment': environment
        }
    })


def cleanup_logging() -> None:
    """
    Clean up logging system on shutdown.
    """
    global _queue_listener

    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def new_trace_id() -> str:
    """Generate a correlation ID for one review or request."""
    return uuid.uuid4().hex
