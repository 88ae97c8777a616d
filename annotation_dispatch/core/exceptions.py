"""Dispatch-specific exceptions for consistent failure reporting."""

import functools
from typing import Optional


class DispatchError(Exception):
    """Base dispatch error."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class SpawnError(DispatchError):
    """Raised when a worker process or its channel cannot be created."""
    pass


class AnnotationError(DispatchError):
    """Raised when the annotator failed on a chunk.

    Carries the fatal text and any diagnostic output captured from the
    worker that failed first.
    """

    def __init__(self,
                 message: str,
                 fatal_text: str,
                 diagnostic_text: Optional[str] = None,
                 worker_pid: Optional[int] = None,
                 sequence: Optional[int] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(message, original_exception)
        self.fatal_text = fatal_text
        self.diagnostic_text = diagnostic_text
        self.worker_pid = worker_pid
        self.sequence = sequence

    def __str__(self) -> str:
        text = f"{self.args[0]}\n{self.fatal_text}"
        if self.diagnostic_text:
            text += f"\n{self.diagnostic_text}"
        return text


class WorkerCrashError(DispatchError):
    """Raised when a worker vanished without sending a usable result."""

    def __init__(self, message: str,
                 worker_pid: Optional[int] = None,
                 sequence: Optional[int] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(message, original_exception)
        self.worker_pid = worker_pid
        self.sequence = sequence


class WorkerTimeoutError(DispatchError):
    """Raised when no worker reported within the configured timeout."""

    def __init__(self, message: str, timeout: float, pending: int):
        super().__init__(message)
        self.timeout = timeout
        self.pending = pending


class ChannelError(DispatchError):
    """Raised when a frame on a worker channel is malformed."""
    pass


class ChannelClosedError(ChannelError):
    """Raised when the peer closed the channel before sending a frame."""
    pass


def handle_spawn_error(operation_name: str):
    """Decorator turning OS-level failures into SpawnError."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SpawnError:
                raise
            except OSError as e:
                raise SpawnError(f"{operation_name} failed: {e}", e) from e
        return wrapper
    return decorator
