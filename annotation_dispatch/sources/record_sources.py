# annotation_dispatch/sources/record_sources.py
"""Record sources that feed chunks to the runner."""

import itertools
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from ..abstractions.interfaces import RecordSource


class IterableRecordSource(RecordSource):
    """Chunks any iterable."""

    def __init__(self, iterable: Iterable[Any]):
        self._iterator = iter(iterable)

    def next_chunk(self, max_size: int) -> List[Any]:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        return list(itertools.islice(self._iterator, max_size))


class LineFileSource(RecordSource):
    """One record per line of a text file.

    Trailing newlines are stripped and blank lines skipped. With
    skip_comments, lines starting with '#' are collected in headers instead
    of being emitted as records.
    """

    def __init__(self, path: Union[str, Path], skip_comments: bool = True,
                 encoding: str = 'utf-8'):
        self.path = Path(path)
        self.skip_comments = skip_comments
        self.headers: List[str] = []
        self._file = open(self.path, 'r', encoding=encoding)
        self.line_number = 0

    def next_chunk(self, max_size: int) -> List[str]:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        if self._file.closed:
            return []

        chunk: List[str] = []
        while len(chunk) < max_size:
            line = self._file.readline()
            if not line:
                break
            self.line_number += 1

            line = line.rstrip('\r\n')
            if not line.strip():
                continue
            if self.skip_comments and line.startswith('#'):
                self.headers.append(line)
                continue
            chunk.append(line)

        return chunk

    def close(self) -> None:
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"LineFileSource(path={str(self.path)!r}, line={self.line_number})"
