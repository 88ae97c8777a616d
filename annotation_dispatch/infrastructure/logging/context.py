"""Correlation scopes for runs, dispatches and workers."""

import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .structured_logger import dispatch_context, get_logger, run_context, worker_context


class LoggingContext:
    """Tags log records of one run and each of its dispatches.

    A run pulls many chunks and each chunk is one dispatch. Within a dispatch
    scope every record carries the run id and a short dispatch id such as
    '1f3a9c2e-4'; the scope also records how long the dispatch took.
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex
        self.timings: Dict[str, Dict[str, Any]] = {}
        self.logger = get_logger(__name__)
        self._dispatches = 0

    @contextmanager
    def dispatch(self, records: int, **metadata):
        """Scope one dispatch of `records` records.

        Example:
            with ctx.dispatch(records=len(chunk), workers=4):
                output = dispatcher.dispatch(chunk)
        """
        self._dispatches += 1
        dispatch_id = f"{self.run_id[:8]}-{self._dispatches}"
        tokens = (run_context.set(self.run_id), dispatch_context.set(dispatch_id))
        self.logger.debug(f"Dispatch {dispatch_id} started",
                          extra={'context': {'records': records, **metadata}})

        started = time.perf_counter()
        status = 'failed'
        try:
            yield dispatch_id
            status = 'completed'
        except Exception as e:
            self.logger.log_error_with_context(e, operation='dispatch', records=records)
            raise
        finally:
            duration = time.perf_counter() - started
            self.timings[dispatch_id] = {
                'status': status,
                'records': records,
                'duration': duration,
                'finished_at': datetime.now(timezone.utc).isoformat(),
            }
            self.logger.log_performance('dispatch', duration, status=status,
                                        items_processed=records, **metadata)
            dispatch_context.reset(tokens[1])
            run_context.reset(tokens[0])

    def get_timings(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.timings)


@contextmanager
def worker_scope(sequence: int):
    """Tag every record logged within scope with a worker sequence number."""
    token = worker_context.set(sequence)
    try:
        yield
    finally:
        worker_context.reset(token)
