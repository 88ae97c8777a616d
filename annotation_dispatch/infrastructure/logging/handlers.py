"""Console and rotating-file handlers."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union

from .formatters import HumanFormatter, JsonFormatter


def stream_supports_color(stream: TextIO) -> bool:
    """ANSI colours only on a terminal, and never with NO_COLOR or TERM=dumb."""
    if os.environ.get('NO_COLOR') or os.environ.get('TERM') == 'dumb':
        return False
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


class ConsoleHandler(logging.StreamHandler):
    """Human-readable records on stderr."""

    def __init__(self,
                 stream: Optional[TextIO] = None,
                 use_colors: Optional[bool] = None,
                 show_context: bool = True,
                 level: int = logging.INFO):
        super().__init__(stream if stream is not None else sys.stderr)
        if use_colors is None:
            use_colors = stream_supports_color(self.stream)
        self.setFormatter(HumanFormatter(use_colors=use_colors, show_context=show_context))
        self.setLevel(level)


class FileHandler(RotatingFileHandler):
    """Size-rotated log file, JSON by default; missing directories are created."""

    def __init__(self,
                 filename: Union[str, Path],
                 max_bytes: int = 100 * 1024 * 1024,
                 backup_count: int = 5,
                 use_json: bool = True,
                 level: int = logging.DEBUG):
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(path, maxBytes=max_bytes, backupCount=backup_count,
                         encoding='utf-8', delay=True)
        if use_json:
            self.setFormatter(JsonFormatter())
        else:
            self.setFormatter(HumanFormatter(use_colors=False))
        self.setLevel(level)
