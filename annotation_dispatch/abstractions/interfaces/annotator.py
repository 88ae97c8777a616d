# annotation_dispatch/abstractions/interfaces/annotator.py
"""Annotator interface - pure abstraction with no-op lifecycle hooks."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class Annotator(ABC):
    """Enriches a chunk of records.

    Implementations mutate the records of the chunk in place. Returning a
    list instead replaces the chunk as the output (for annotators that
    render records into lines). Raising fails the whole chunk.
    """

    @abstractmethod
    def annotate(self, chunk: List[Any]) -> Optional[List[Any]]:
        """Annotate every record of the chunk, preserving their order."""
        pass

    def setup(self) -> None:
        """One-time initialisation before the first chunk (connections, caches)."""
        pass

    def reset_after_fork(self) -> None:
        """Drop process-bound resources inherited from the parent process.

        Called inside every worker before it touches its sub-chunk, e.g. to
        reopen file handles that native libraries do not tolerate across fork.
        """
        pass
