# annotation_dispatch/core/dispatcher.py
"""Forked dispatch of one chunk across worker processes.

The dispatcher alternates between two phases until the chunk is done:

    fill   - spawn workers on successive sub-chunks taken from the front of
             the chunk while records remain and at most parallelism workers
             are active (so up to parallelism + 1 can be running at once).
    drain  - wait for readable worker channels and collect their results;
             return to fill as soon as records remain and fewer than
             parallelism workers are active.

Results are reassembled by spawn sequence, so the output order equals the
input order no matter which worker finishes first. The first fatal result
aborts the whole chunk.
"""

import multiprocessing
import os
import selectors
import time
import traceback
from dataclasses import dataclass, field
from multiprocessing.process import BaseProcess
from typing import Any, Callable, Iterable, List, Optional

from ..config.dispatch_config import DispatchConfig
from ..infrastructure.logging import get_logger
from .channel import Channel, open_channel
from .envelope import EnvelopeError, ResultEnvelope
from .exceptions import (
    AnnotationError, ChannelClosedError, ChannelError, SpawnError,
    WorkerCrashError, WorkerTimeoutError,
)
from .splitter import next_sub_chunk_size
from .worker import AnnotatorLike, annotate_chunk, run_worker

logger = get_logger(__name__)

WarningCallback = Callable[[str], None]


@dataclass
class WorkerHandle:
    """Parent-side bookkeeping for one spawned worker."""
    sequence: int
    process: BaseProcess
    channel: Channel
    sub_chunk_size: int
    output: Optional[List[Any]] = None
    finished: bool = False

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid


@dataclass
class DispatchStats:
    """What happened during the most recent dispatch call."""
    records: int = 0
    workers_spawned: int = 0
    peak_active: int = 0
    sub_chunk_sizes: List[int] = field(default_factory=list)
    worker_pids: List[int] = field(default_factory=list)
    duration_seconds: float = 0.0

    def record_spawn(self, handle: WorkerHandle, active: int) -> None:
        self.workers_spawned += 1
        self.peak_active = max(self.peak_active, active)
        self.sub_chunk_sizes.append(handle.sub_chunk_size)
        self.worker_pids.append(handle.pid)


class ForkDispatcher:
    """
    Annotates chunks either in-process or across forked workers.

    With config.fork set to 0 or None the annotator runs in the calling
    process. Any positive value forks workers; the output is identical in
    both modes.
    """

    def __init__(self,
                 annotator: AnnotatorLike,
                 config: Optional[DispatchConfig] = None,
                 warning_callback: Optional[WarningCallback] = None):
        self.annotator = annotator
        self.config = config or DispatchConfig.from_config()
        self.warning_callback = warning_callback or self._log_diagnostic
        self.last_stats: Optional[DispatchStats] = None
        self._context = multiprocessing.get_context(self.config.start_method)

    def dispatch(self, chunk: Iterable[Any]) -> List[Any]:
        """Annotate a chunk and return its output records in input order.

        Raises:
            AnnotationError: the annotator failed on some record
            WorkerCrashError: a worker died without reporting
            WorkerTimeoutError: no worker reported within worker_timeout
            SpawnError: a worker could not be started
        """
        records = list(chunk)
        self.last_stats = DispatchStats(records=len(records))

        if not records:
            return []

        start_time = time.time()
        try:
            if self.config.parallel:
                return self._dispatch_forked(records)
            return self._dispatch_sequential(records)
        finally:
            self.last_stats.duration_seconds = time.time() - start_time

    def _dispatch_sequential(self, records: List[Any]) -> List[Any]:
        try:
            return annotate_chunk(self.annotator, records)
        except Exception as e:
            raise AnnotationError(
                "Annotation failed",
                fatal_text=traceback.format_exc(),
                worker_pid=os.getpid(),
                original_exception=e,
            ) from e

    def _dispatch_forked(self, records: List[Any]) -> List[Any]:
        parallelism = self.config.parallelism
        stats = self.last_stats
        total = len(records)
        cursor = 0
        active = 0
        handles: List[WorkerHandle] = []
        selector = selectors.DefaultSelector()

        try:
            while cursor < total or active:
                # fill
                while cursor < total and active <= parallelism:
                    size = next_sub_chunk_size(
                        total - cursor,
                        parallelism,
                        active,
                        self.config.buffer_size,
                        self.config.min_sub_chunk_size,
                        self.config.delta,
                    )
                    handle = self._spawn(records[cursor:cursor + size], len(handles))
                    cursor += size
                    handles.append(handle)
                    selector.register(handle.channel, selectors.EVENT_READ, handle)
                    active += 1
                    stats.record_spawn(handle, active)

                # drain
                while active:
                    active -= self._drain_ready(selector, active)
                    if cursor < total and active < parallelism:
                        break
        except BaseException:
            self._abort(handles)
            raise
        finally:
            selector.close()

        self._reap(handles)

        output: List[Any] = []
        for handle in handles:
            output.extend(handle.output)

        logger.debug(
            f"Dispatched {total} records to {stats.workers_spawned} workers",
            extra={'context': {
                'peak_active': stats.peak_active,
                'sub_chunk_sizes': stats.sub_chunk_sizes,
            }}
        )
        return output

    def _spawn(self, records: List[Any], sequence: int) -> WorkerHandle:
        parent_end, child_end = open_channel()
        if self.config.worker_timeout is not None:
            parent_end.set_timeout(self.config.worker_timeout)

        try:
            process = self._context.Process(
                target=run_worker,
                args=(self.annotator, records, child_end, sequence, self.config.fault_injection),
                name=f"annotation-worker-{sequence}",
            )
            process.start()
        except Exception as e:
            parent_end.close()
            raise SpawnError(f"Failed to start worker {sequence}: {e}", e) from e
        finally:
            # the child owns the write end now
            child_end.close()

        logger.debug(f"Spawned worker {sequence} (pid {process.pid}) with {len(records)} records")

        return WorkerHandle(
            sequence=sequence,
            process=process,
            channel=parent_end,
            sub_chunk_size=len(records),
        )

    def _drain_ready(self, selector: selectors.BaseSelector, active: int) -> int:
        """Collect every result that is ready; return how many workers finished."""
        timeout = self.config.worker_timeout
        events = selector.select(timeout)

        if not events:
            if timeout is not None:
                raise WorkerTimeoutError(
                    f"No worker reported within {timeout}s ({active} still running)",
                    timeout=timeout,
                    pending=active,
                )
            raise WorkerCrashError(f"No progress while waiting on {active} workers")

        finished = 0
        for key, _ in events:
            handle: WorkerHandle = key.data
            envelope = self._read_envelope(handle)

            selector.unregister(handle.channel)
            handle.channel.close()

            if envelope.diagnostic_text:
                self.warning_callback(envelope.diagnostic_text)

            if envelope.failed:
                raise AnnotationError(
                    f"Annotation failed in worker {handle.sequence} (pid {handle.pid})",
                    fatal_text=envelope.fatal_error_text,
                    diagnostic_text=envelope.diagnostic_text,
                    worker_pid=handle.pid,
                    sequence=handle.sequence,
                )

            handle.output = envelope.output_records or []
            handle.finished = True
            finished += 1

        return finished

    def _read_envelope(self, handle: WorkerHandle) -> ResultEnvelope:
        try:
            envelope = ResultEnvelope.from_message(handle.channel.recv_message())
        except ChannelClosedError as e:
            raise WorkerCrashError(
                f"Worker {handle.sequence} (pid {handle.pid}) died without reporting",
                worker_pid=handle.pid,
                sequence=handle.sequence,
                original_exception=e,
            ) from e
        except TimeoutError as e:
            raise WorkerTimeoutError(
                f"Worker {handle.sequence} (pid {handle.pid}) stalled while reporting",
                timeout=self.config.worker_timeout,
                pending=1,
            ) from e
        except (ChannelError, EnvelopeError, OSError) as e:
            raise WorkerCrashError(
                f"Worker {handle.sequence} (pid {handle.pid}) sent an unreadable result: {e}",
                worker_pid=handle.pid,
                sequence=handle.sequence,
                original_exception=e,
            ) from e

        if envelope.worker_pid != handle.pid:
            raise WorkerCrashError(
                f"Result on worker {handle.sequence} channel came from pid "
                f"{envelope.worker_pid}, expected {handle.pid}",
                worker_pid=handle.pid,
                sequence=handle.sequence,
            )
        return envelope

    def _reap(self, handles: List[WorkerHandle]) -> None:
        for handle in handles:
            handle.process.join()

    def _abort(self, handles: List[WorkerHandle]) -> None:
        """Stop and reap every worker already spawned for this chunk."""
        for handle in handles:
            handle.channel.close()

        grace = self.config.terminate_grace_seconds
        for handle in handles:
            process = handle.process
            if process.is_alive():
                logger.debug(f"Terminating worker {handle.sequence} (pid {handle.pid})")
                process.terminate()
                process.join(grace)
                if process.is_alive():
                    logger.warning(
                        f"Worker {handle.sequence} (pid {handle.pid}) ignored SIGTERM, killing"
                    )
                    process.kill()
            process.join()

    def _log_diagnostic(self, text: str) -> None:
        logger.warning(text.rstrip('\n'))


def dispatch(chunk: Iterable[Any],
             annotator: AnnotatorLike,
             parallelism: Optional[int],
             buffer_size: int,
             warning_callback: Optional[WarningCallback] = None,
             **options) -> List[Any]:
    """Annotate one chunk with a throwaway dispatcher.

    Args:
        chunk: Records to annotate
        annotator: Annotator instance or callable taking the chunk
        parallelism: Worker processes to use; 0 or None runs in-process
        buffer_size: Chunk size the records were read with
        warning_callback: Receives worker diagnostic text
        **options: Remaining DispatchConfig fields

    Returns:
        Output records in input order
    """
    config = DispatchConfig(fork=parallelism, buffer_size=buffer_size, **options)
    return ForkDispatcher(annotator, config, warning_callback).dispatch(chunk)
