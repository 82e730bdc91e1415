"""Observability package for the FAQ knowledge base."""

from .logging import (
    setup_logging,
    setup_logging_from_settings,
    get_logger,
    get_structured_logger,
    StructuredLogger,
    JSONFormatter,
    ColoredFormatter,
    RequestContextFilter,
    request_context,
    current_request_context,
    log_performance
)

__all__ = [
    'setup_logging',
    'setup_logging_from_settings',
    'get_logger',
    'get_structured_logger',
    'StructuredLogger',
    'JSONFormatter',
    'ColoredFormatter',
    'RequestContextFilter',
    'request_context',
    'current_request_context',
    'log_performance'
]
