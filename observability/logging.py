from __future__ import annotations
import functools
import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime', 'user_id', 'request_id',
}
_CONTEXT_PREFIX = "ctx_"

_request_user: ContextVar[Optional[str]] = ContextVar("faqbase_request_user", default=None)
_request_id: ContextVar[Optional[str]] = ContextVar("faqbase_request_id", default=None)


@contextmanager
def request_context(user_id: Optional[str] = None, request_id: Optional[str] = None) -> Iterator[str]:
    """Attach the caller and a request id to every record logged inside the block."""
    request_id = request_id or uuid.uuid4().hex[:12]
    user_token = _request_user.set(user_id)
    id_token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_user.reset(user_token)
        _request_id.reset(id_token)


def current_request_context() -> Dict[str, Optional[str]]:
    return {"user_id": _request_user.get(), "request_id": _request_id.get()}


class RequestContextFilter(logging.Filter):
    """Stamps ``user_id`` and ``request_id`` on records from the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = _request_user.get()
        record.request_id = _request_id.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    ``StructuredLogger`` context (``ctx_*`` extras) is nested under
    ``context``; other extras are emitted at the top level.
    """

    def __init__(self, service_name: str = "faqbase"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        user_id = getattr(record, "user_id", None)
        request_id = getattr(record, "request_id", None)
        if user_id:
            log_entry["user_id"] = user_id
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        context = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if key.startswith(_CONTEXT_PREFIX):
                context[key[len(_CONTEXT_PREFIX):]] = value
            else:
                log_entry[key] = value
        if context:
            log_entry["context"] = context

        return json.dumps(log_entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter; shows the request id and caller when present."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')
        parts = [timestamp, f"{record.levelname:8}", record.name]

        request_id = getattr(record, "request_id", None)
        if request_id:
            parts.append(f"{request_id}@{getattr(record, 'user_id', None) or '-'}")
        parts.append(record.getMessage())
        message = " | ".join(parts)

        if self.use_colors and record.levelname in self.COLORS:
            message = f"{self.COLORS[record.levelname]}{message}{self.RESET}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging(
    level: str = "INFO",
    service_name: str = "faqbase",
    log_file: Optional[str] = None,
    use_json: bool = False,
    use_colors: bool = True
) -> None:
    """Setup logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Name of the service for structured logging
        log_file: Optional file path for file logging (always JSON)
        use_json: Whether to use JSON formatting on the console
        use_colors: Whether to use colored output for console
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    context_filter = RequestContextFilter()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.addFilter(context_filter)
    console_handler.setFormatter(JSONFormatter(service_name) if use_json else ColoredFormatter(use_colors))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(JSONFormatter(service_name))
        root_logger.addHandler(file_handler)

    # Library loggers stay at WARNING
    for noisy in ("uvicorn.access", "fastapi", "urllib3", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def setup_logging_from_settings(settings: Dict[str, Any], service_name: str = "faqbase") -> None:
    """Apply the ``logging`` section of the application config."""
    setup_logging(
        level=settings.get('level') or "INFO",
        service_name=service_name,
        log_file=settings.get('file'),
        use_json=bool(settings.get('json')),
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class StructuredLogger:
    """Logger carrying fixed context, e.g. the component name."""

    def __init__(self, name: str, **default_context):
        self.logger = logging.getLogger(name)
        self.default_context = default_context

    def bind(self, **context) -> 'StructuredLogger':
        """Copy of this logger with extra default context."""
        return StructuredLogger(self.logger.name, **{**self.default_context, **context})

    def _extra(self, context: Dict[str, Any]) -> Dict[str, Any]:
        full_context = {**self.default_context, **context}
        return {f"{_CONTEXT_PREFIX}{k}": v for k, v in full_context.items()}

    def debug(self, message: str, **context) -> None:
        self.logger.debug(message, extra=self._extra(context))

    def info(self, message: str, **context) -> None:
        self.logger.info(message, extra=self._extra(context))

    def warning(self, message: str, **context) -> None:
        self.logger.warning(message, extra=self._extra(context))

    def error(self, message: str, **context) -> None:
        self.logger.error(message, extra=self._extra(context))

    def exception(self, message: str, **context) -> None:
        self.logger.exception(message, extra=self._extra(context))


def get_structured_logger(name: str, **default_context) -> StructuredLogger:
    return StructuredLogger(name, **default_context)


def log_performance(logger_name: Optional[str] = None, threshold_ms: float = 1000.0):
    """Warn when the decorated call takes longer than ``threshold_ms``."""
    def decorator(func):
        logger = get_logger(logger_name or func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000
                if duration_ms > threshold_ms:
                    logger.warning(
                        f"Slow call: {func.__name__} took {duration_ms:.0f}ms",
                        extra={"duration_ms": round(duration_ms, 1), "threshold_ms": threshold_ms},
                    )

        return wrapper
    return decorator
