# annotation_dispatch/abstractions/interfaces/record_source.py
"""Record source interface - pure abstraction."""

from abc import ABC, abstractmethod
from typing import Any, List


class RecordSource(ABC):
    """Produces bounded chunks of input records on demand."""

    @abstractmethod
    def next_chunk(self, max_size: int) -> List[Any]:
        """Return up to max_size records; an empty list means exhausted."""
        pass
