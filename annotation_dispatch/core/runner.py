# annotation_dispatch/core/runner.py
"""Pull-based runner: reads chunks from a source and yields annotated records."""

from collections import deque
from typing import Any, Callable, Deque, Iterator, Optional

from ..abstractions.interfaces import RecordSource
from ..config.dispatch_config import DispatchConfig
from ..infrastructure.logging import LoggingContext, get_logger, log_operation
from .dispatcher import ForkDispatcher, WarningCallback
from .worker import AnnotatorLike

logger = get_logger(__name__)

# returned by _pull once the source is exhausted; None is a valid output record
_EXHAUSTED = object()


class Runner:
    """Drives a record source through the dispatcher one chunk at a time.

    Each chunk holds up to buffer_size records. Chunks are annotated across
    forked workers when config.fork is set and in-process otherwise; output
    records come back in input order either way.

    Example usage:
        runner = Runner(LineFileSource('input.txt'), UpperCaseAnnotator(),
                        DispatchConfig(fork=4))
        with open('output.txt', 'w') as out:
            runner.run(lambda line: out.write(line + '\\n'))
    """

    def __init__(self,
                 source: RecordSource,
                 annotator: AnnotatorLike,
                 dispatch_config: Optional[DispatchConfig] = None,
                 warning_callback: Optional[WarningCallback] = None):
        self.source = source
        self.annotator = annotator
        self.config = dispatch_config or DispatchConfig.from_config()
        self.dispatcher = ForkDispatcher(annotator, self.config, warning_callback)
        self.logging_context = LoggingContext()

        self.chunks_processed = 0
        self.records_processed = 0

        self._buffer: Deque[Any] = deque()
        self._initialized = False
        self._exhausted = False

    def init(self) -> None:
        """One-time setup; safe to call repeatedly."""
        if self._initialized:
            return

        setup = getattr(self.annotator, 'setup', None)
        if callable(setup):
            setup()

        self._initialized = True
        logger.debug(
            "Runner initialized",
            extra={'context': {
                'fork': self.config.fork,
                'buffer_size': self.config.buffer_size,
            }}
        )

    def next_output(self) -> Optional[Any]:
        """Return the next annotated record, or None once the source is exhausted.

        An annotator may emit None as a record; iterate the runner to tell
        such records apart from the end of input.
        """
        record = self._pull()
        return None if record is _EXHAUSTED else record

    def _pull(self) -> Any:
        self.init()

        while not self._buffer:
            if self._exhausted or not self._refill():
                return _EXHAUSTED

        return self._buffer.popleft()

    def _refill(self) -> bool:
        chunk = self.source.next_chunk(self.config.buffer_size)
        if not chunk:
            self._exhausted = True
            return False

        with self.logging_context.dispatch(
            records=len(chunk),
            workers=self.config.fork or 0,
        ):
            output = self.dispatcher.dispatch(chunk)

        self.chunks_processed += 1
        self.records_processed += len(chunk)
        self._buffer.extend(output)
        return True

    def __iter__(self) -> Iterator[Any]:
        while True:
            record = self._pull()
            if record is _EXHAUSTED:
                return
            yield record

    @log_operation("annotation_run")
    def run(self, writer: Optional[Callable[[Any], Any]] = None) -> int:
        """Annotate everything the source yields.

        Args:
            writer: Called with every output record, in order

        Returns:
            Number of output records
        """
        count = 0
        for record in self:
            if writer is not None:
                writer(record)
            count += 1
        return count
