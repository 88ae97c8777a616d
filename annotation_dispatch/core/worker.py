# annotation_dispatch/core/worker.py
"""Execution wrapper run inside every worker process.

A worker owns one sub-chunk and one channel end. Whatever happens inside the
annotator, the worker sends exactly one ResultEnvelope and exits with status
0; failures travel inside the envelope, never through the exit code.
"""

import contextlib
import io
import os
import pickle
import traceback
from typing import Any, Callable, List, Optional, Union

from ..abstractions.interfaces import Annotator
from ..config.dispatch_config import FaultInjection
from ..infrastructure.logging import get_logger, setup_capture_logging, worker_scope
from .channel import Channel
from .envelope import ResultEnvelope

logger = get_logger(__name__)

TEST_WARNING = 'TEST WARNING'
TEST_DIE = 'TEST DIE'

AnnotatorLike = Union[Annotator, Callable[[List[Any]], Optional[List[Any]]]]


class InjectedFault(RuntimeError):
    """Failure raised on purpose by FaultInjection.die."""
    pass


def annotate_chunk(annotator: AnnotatorLike, records: List[Any]) -> List[Any]:
    """Run the annotator over records and return the output records.

    Accepts an Annotator or a plain callable taking the chunk. The output is
    the (mutated) chunk itself unless the annotator returns a list.
    """
    annotate = getattr(annotator, 'annotate', annotator)
    result = annotate(records)
    if result is None:
        return records
    return list(result)


def _reset_after_fork(annotator: AnnotatorLike) -> None:
    reset = getattr(annotator, 'reset_after_fork', None)
    if callable(reset):
        reset()


def execute_sub_chunk(annotator: AnnotatorLike,
                      records: List[Any],
                      sequence: int,
                      fault_injection: Optional[FaultInjection] = None) -> ResultEnvelope:
    """Annotate a sub-chunk with all diagnostics captured.

    Never raises for annotator failures: the traceback is returned as the
    envelope's fatal_error_text and any partial output is discarded.
    """
    buffer = io.StringIO()
    setup_capture_logging(buffer)

    output = None
    fatal = None

    with contextlib.redirect_stderr(buffer), worker_scope(sequence):
        try:
            _reset_after_fork(annotator)

            if fault_injection is not None and fault_injection.applies_to(sequence):
                if fault_injection.warning:
                    logger.warning(TEST_WARNING)
                if fault_injection.die:
                    raise InjectedFault(TEST_DIE)

            output = annotate_chunk(annotator, records)
        except Exception:
            fatal = traceback.format_exc()

    return ResultEnvelope(
        worker_pid=os.getpid(),
        output_records=output if fatal is None else None,
        diagnostic_text=buffer.getvalue() or None,
        fatal_error_text=fatal,
    )


def run_worker(annotator: AnnotatorLike,
               records: List[Any],
               channel: Channel,
               sequence: int,
               fault_injection: Optional[FaultInjection] = None) -> None:
    """Process target: annotate, report once, close the channel."""
    envelope = execute_sub_chunk(annotator, records, sequence, fault_injection)

    try:
        try:
            channel.send_message(envelope.to_message())
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            # nothing was written; report the serialization failure instead
            fallback = ResultEnvelope(
                worker_pid=envelope.worker_pid,
                diagnostic_text=envelope.diagnostic_text,
                fatal_error_text=f"Worker result could not be serialized: {type(e).__name__}: {e}",
            )
            channel.send_message(fallback.to_message())
    finally:
        channel.close_write()
        channel.close()
