"""Record formatters: a compact console layout and single-line JSON."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'WARNING': '\033[93m',
    'ERROR': '\033[91m',
    'CRITICAL': '\033[95m',
}
RESET = '\033[0m'

_CONTEXT_LABELS = (
    ('dispatch_id', 'dispatch'),
    ('worker_sequence', 'worker'),
    ('worker_pid', 'pid'),
)


def context_tag(context: Optional[Dict[str, Any]]) -> str:
    """Short tag such as '[dispatch:ab12cd34-3 worker:2 pid:4711]', or ''."""
    if not context:
        return ''
    parts = [
        f"{label}:{context[key]}"
        for key, label in _CONTEXT_LABELS
        if context.get(key) is not None
    ]
    return f"[{' '.join(parts)}]" if parts else ''


def performance_summary(performance: Optional[Dict[str, Any]]) -> str:
    if not performance:
        return ''
    parts = []
    if 'duration_seconds' in performance:
        parts.append(f"{performance['duration_seconds']:.3f}s")
    if 'items_processed' in performance:
        parts.append(f"{performance['items_processed']} records")
    if 'items_per_second' in performance:
        parts.append(f"{performance['items_per_second']:.1f} records/s")
    if performance.get('workers'):
        parts.append(f"{performance['workers']} workers")
    return ', '.join(parts)


def _traceback_text(record: logging.LogRecord, formatter: logging.Formatter) -> Optional[str]:
    text = getattr(record, 'traceback', None)
    if not text and record.exc_info:
        text = formatter.formatException(record.exc_info)
    return text or None


class HumanFormatter(logging.Formatter):
    """One line per record: time, level, logger, context tag, message.

    Performance metrics are appended in parentheses and a traceback, if any,
    follows on the next lines.
    """

    def __init__(self, use_colors: bool = True, show_context: bool = True):
        super().__init__(datefmt='%H:%M:%S')
        self.use_colors = use_colors
        self.show_context = show_context

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, '') if self.use_colors else ''
        level = f"{color}{record.levelname:<8}{RESET}" if color else f"{record.levelname:<8}"

        fields = [self.formatTime(record, self.datefmt), level, record.name]
        if self.show_context:
            tag = context_tag(getattr(record, 'context', None))
            if tag:
                fields.append(tag)
        fields.append(record.getMessage())
        line = ' '.join(fields)

        summary = performance_summary(getattr(record, 'performance', None))
        if summary:
            line += f" ({summary})"

        trace = _traceback_text(record, self)
        if trace:
            trace = trace.rstrip('\n')
            line += f"\n{color}{trace}{RESET}" if color else f"\n{trace}"

        return line


class JsonFormatter(logging.Formatter):
    """Single-line JSON documents for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        document = {
            'time': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'pid': record.process,
            'location': f"{record.module}:{record.lineno}",
        }

        for key in ('context', 'performance'):
            value = getattr(record, key, None)
            if value:
                document[key] = value

        trace = _traceback_text(record, self)
        if trace:
            document['traceback'] = trace

        return json.dumps(document, default=str, separators=(',', ':'))
