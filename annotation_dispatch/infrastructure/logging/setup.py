"""Process-wide logging configuration."""

import logging
from typing import Any, Optional, TextIO

from .formatters import HumanFormatter
from .handlers import ConsoleHandler, FileHandler
from .structured_logger import get_logger


def _level(name: Any, fallback: int = logging.INFO) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else fallback


def _reset_root(level: int) -> logging.Logger:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(level)
    return root


def setup_logging(config: Any,
                  log_file: Optional[str] = None,
                  console: bool = True,
                  log_level: Optional[str] = None):
    """Install console and file handlers on the root logger.

    Args:
        config: Anything with a dot-notation get(), normally a Config
        log_file: Rotating JSON log file; defaults to logging.file
        console: Attach a ConsoleHandler on stderr
        log_level: Overrides logging.level
    """
    level = _level(log_level or config.get('logging.level', 'INFO'))
    root = _reset_root(level)

    if console:
        root.addHandler(ConsoleHandler(
            show_context=config.get('logging.console_context', True),
            level=level,
        ))

    log_file = log_file or config.get('logging.file')
    if log_file:
        root.addHandler(FileHandler(
            log_file,
            max_bytes=config.get('logging.max_file_size', 100 * 1024 * 1024),
            backup_count=config.get('logging.backup_count', 5),
        ))

    get_logger(__name__).debug(
        "Logging configured",
        extra={'context': {
            'level': logging.getLevelName(level),
            'console': console,
            'file': str(log_file) if log_file else None,
        }}
    )


def setup_simple_logging(log_level: str = 'INFO'):
    """Console-only logging for scripts and debugging sessions."""
    level = _level(log_level)
    _reset_root(level).addHandler(ConsoleHandler(level=level))


def setup_capture_logging(stream: TextIO, log_level: str = 'WARNING') -> logging.Handler:
    """Route all logging and warnings of the current process into a stream.

    Used inside worker processes: handlers inherited from the parent (console,
    rotating files) are dropped so that diagnostics are attributed to the
    worker and shipped back with its result.
    """
    level = _level(log_level, logging.WARNING)
    root = _reset_root(level)

    capture = logging.StreamHandler(stream)
    capture.setFormatter(HumanFormatter(use_colors=False, show_context=False))
    capture.setLevel(level)
    root.addHandler(capture)
    logging.captureWarnings(True)

    # loggers with handlers of their own would bypass the capture
    for logger in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(logger, logging.Logger):
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.propagate = True

    return capture
