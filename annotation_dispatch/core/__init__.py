"""Chunk dispatch across forked worker processes."""

from .exceptions import (
    DispatchError, SpawnError, AnnotationError, WorkerCrashError,
    WorkerTimeoutError, ChannelError, ChannelClosedError,
)
from .splitter import next_sub_chunk_size, max_sub_chunk_size
from .envelope import ResultEnvelope
from .dispatcher import ForkDispatcher, DispatchStats, dispatch
from .runner import Runner

__all__ = [
    'DispatchError',
    'SpawnError',
    'AnnotationError',
    'WorkerCrashError',
    'WorkerTimeoutError',
    'ChannelError',
    'ChannelClosedError',
    'next_sub_chunk_size',
    'max_sub_chunk_size',
    'ResultEnvelope',
    'ForkDispatcher',
    'DispatchStats',
    'dispatch',
    'Runner',
]
