"""Timing decorator for top-level operations."""

import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar

from .structured_logger import get_logger

F = TypeVar('F', bound=Callable[..., Any])


def log_operation(operation_name: Optional[str] = None, level: int = logging.INFO):
    """Log start, duration and outcome of every call of the decorated function.

    An int return value is reported as the number of items processed.
    Exceptions are logged with their traceback and re-raised.

    Example:
        @log_operation("annotation_run")
        def run(self, writer=None) -> int:
            ...
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__qualname__
        logger = get_logger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.log(level, f"Starting {name}")
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.log_error_with_context(
                    e, operation=name,
                    duration_seconds=round(time.perf_counter() - started, 3)
                )
                raise

            metrics = {'status': 'success'}
            if isinstance(result, int) and not isinstance(result, bool):
                metrics['items_processed'] = result
            logger.log_performance(name, time.perf_counter() - started, **metrics)
            return result

        return wrapper  # type: ignore
    return decorator
