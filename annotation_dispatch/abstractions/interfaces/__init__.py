"""Foundation interfaces - pure abstractions with no dependencies."""

from .record_source import RecordSource
from .annotator import Annotator

__all__ = ['RecordSource', 'Annotator']
