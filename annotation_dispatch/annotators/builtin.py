# annotation_dispatch/annotators/builtin.py
"""Ready-made annotators."""

from typing import Any, Callable, List, Optional

from ..abstractions.interfaces import Annotator


class FunctionAnnotator(Annotator):
    """Adapts a per-record function into a chunk annotator.

    The function may mutate the record in place and return None, or return
    a replacement record.
    """

    def __init__(self, func: Callable[[Any], Any], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, '__name__', type(func).__name__)

    def annotate(self, chunk: List[Any]) -> List[Any]:
        output = []
        for record in chunk:
            result = self.func(record)
            output.append(record if result is None else result)
        return output

    def __repr__(self) -> str:
        return f"FunctionAnnotator({self.name})"


class PassThroughAnnotator(Annotator):
    """Leaves every record untouched."""

    def annotate(self, chunk: List[Any]) -> None:
        return None


class UpperCaseAnnotator(Annotator):
    def annotate(self, chunk: List[Any]) -> List[str]:
        return [str(record).upper() for record in chunk]
