"""Logger subclass that stamps every record with run, dispatch and worker context."""

import logging
import os
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

run_context: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
dispatch_context: ContextVar[Optional[str]] = ContextVar('dispatch_id', default=None)
worker_context: ContextVar[Optional[int]] = ContextVar('worker_sequence', default=None)

_CONTEXT_VARS = (
    ('run_id', run_context),
    ('dispatch_id', dispatch_context),
    ('worker_sequence', worker_context),
)


def current_context() -> Dict[str, Any]:
    """Context values set in the calling scope, without the unset ones."""
    values = {name: var.get() for name, var in _CONTEXT_VARS}
    return {name: value for name, value in values.items() if value is not None}


def _format_exc_info(exc_info) -> Optional[str]:
    if isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
    elif not isinstance(exc_info, tuple):
        exc_info = sys.exc_info()
    if exc_info[0] is None:
        return None
    return ''.join(traceback.format_exception(*exc_info))


class StructuredLogger(logging.Logger):
    """Logger whose records carry `context`, `performance` and `traceback` attributes.

    Structured data is passed as extra={'context': {...}} or
    extra={'performance': {...}}; any other extra keys are folded into the
    context mapping. Inside a worker scope the worker pid is added as well.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self.bound_fields: Dict[str, Any] = {}

    def bind(self, **fields):
        """Attach fields to every later record of this logger."""
        self.bound_fields.update(fields)

    def unbind(self, *names):
        for name in names:
            self.bound_fields.pop(name, None)

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1):
        extra = dict(extra or {})
        performance = extra.pop('performance', None)
        traceback_text = extra.pop('traceback', None)

        context = {**current_context(), **self.bound_fields}
        context.update(extra.pop('context', None) or {})
        context.update(extra)
        if 'worker_sequence' in context:
            context.setdefault('worker_pid', os.getpid())

        if traceback_text is None and exc_info:
            traceback_text = _format_exc_info(exc_info)

        super()._log(
            level, msg, args,
            exc_info=None,
            extra={'context': context, 'performance': performance, 'traceback': traceback_text},
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )

    def log_performance(self, operation: str, duration: float, **metrics):
        """Log an INFO record with timing metrics.

        items_per_second is derived when items_processed is given.

        Example:
            logger.log_performance('dispatch', 1.23, items_processed=5000, workers=4)
        """
        performance = {
            'operation': operation,
            'duration_seconds': round(duration, 3),
            'finished_at': datetime.now(timezone.utc).isoformat(),
            **metrics,
        }
        if duration > 0 and 'items_processed' in metrics:
            performance['items_per_second'] = round(metrics['items_processed'] / duration, 2)

        self.info(f"Performance: {operation} completed in {duration:.3f}s",
                  extra={'performance': performance})

    def log_error_with_context(self, error: BaseException, operation: Optional[str] = None,
                               **context):
        """Log an ERROR record for an exception, traceback included."""
        context['error_type'] = type(error).__name__
        if operation:
            context['operation'] = operation
        self.error(f"{type(error).__name__}: {error}", exc_info=error,
                   extra={'context': context})


# Names already claimed by a plain logging.Logger
_detached: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Get the StructuredLogger registered under name, creating it if needed.

    Example:
        from annotation_dispatch.infrastructure.logging import get_logger
        logger = get_logger(__name__)
    """
    manager = logging.Logger.manager
    existing = manager.loggerDict.get(name)

    if isinstance(existing, StructuredLogger):
        return existing

    if isinstance(existing, logging.Logger):
        if name not in _detached:
            logger = StructuredLogger(name)
            # propagate through the plain logger so its configuration still applies
            logger.parent = existing
            _detached[name] = logger
        return _detached[name]

    previous = manager.loggerClass
    manager.setLoggerClass(StructuredLogger)
    try:
        return logging.getLogger(name)
    finally:
        manager.loggerClass = previous
