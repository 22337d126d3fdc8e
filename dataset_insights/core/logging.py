"""
Structured logging configuration.

JSON lines for production, readable text with the request's correlation ID
for development.
"""
import os
import sys
import logging
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

# Correlation ID of the request being served; "system" outside requests
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="system")

_factory_installed = False

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'pathname', 'process',
    'processName', 'relativeCreated', 'stack_info', 'thread', 'threadName',
    'exc_info', 'exc_text', 'message', 'correlation_id', 'taskName',
))


def install_correlation_factory() -> None:
    """Tag every new LogRecord with the current correlation ID. Safe to call repeatedly."""
    global _factory_installed
    if _factory_installed:
        return

    base_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = base_factory(*args, **kwargs)
        record.correlation_id = correlation_id_var.get()
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "correlation_id": getattr(record, 'correlation_id', 'system'),
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Readable text formatter for development."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, 'correlation_id'):
            record.correlation_id = 'system'
        return super().format(record)


def configure_logging(log_level: str = None) -> None:
    """
    Configure root logging.

    Uses LOG_FORMAT env var:
    - 'json': structured JSON logging
    - 'text': human-readable format (default)
    """
    log_format = os.getenv('LOG_FORMAT', 'text').lower()
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    install_correlation_factory()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    if log_format == 'json':
        root_logger.info("Structured JSON logging enabled")
