"""Structured logging for dispatch monitoring."""

from .structured_logger import (
    StructuredLogger, get_logger, current_context,
    run_context, dispatch_context, worker_context,
)
from .context import LoggingContext, worker_scope
from .decorators import log_operation
from .formatters import HumanFormatter, JsonFormatter
from .handlers import ConsoleHandler, FileHandler
from .setup import setup_logging, setup_simple_logging, setup_capture_logging

__all__ = [
    'StructuredLogger',
    'get_logger',
    'current_context',
    'run_context',
    'dispatch_context',
    'worker_context',
    'LoggingContext',
    'worker_scope',
    'log_operation',
    'HumanFormatter',
    'JsonFormatter',
    'ConsoleHandler',
    'FileHandler',
    'setup_logging',
    'setup_simple_logging',
    'setup_capture_logging',
]
