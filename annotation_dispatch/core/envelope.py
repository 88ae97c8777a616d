# annotation_dispatch/core/envelope.py
"""Result envelope sent by a worker process before it exits."""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional


class EnvelopeError(ValueError):
    """Raised when a decoded message is not a valid result envelope."""
    pass


@dataclass
class ResultEnvelope:
    """The single message a worker sends back to the dispatcher."""
    worker_pid: int
    output_records: Optional[List[Any]] = None
    diagnostic_text: Optional[str] = None
    fatal_error_text: Optional[str] = None

    @property
    def failed(self) -> bool:
        return bool(self.fatal_error_text)

    def to_message(self) -> Dict[str, Any]:
        # shallow: records cross the channel as the annotator left them
        return {field.name: getattr(self, field.name) for field in fields(self)}

    @classmethod
    def from_message(cls, message: Any) -> 'ResultEnvelope':
        """Validate a decoded frame and build an envelope from it."""
        if not isinstance(message, dict):
            raise EnvelopeError(f"Expected a mapping, got {type(message).__name__}")

        pid = message.get('worker_pid')
        if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
            raise EnvelopeError(f"Envelope has no valid worker_pid: {pid!r}")

        output = message.get('output_records')
        if output is not None and not isinstance(output, list):
            raise EnvelopeError(
                f"output_records must be a list, got {type(output).__name__}"
            )

        return cls(
            worker_pid=pid,
            output_records=output,
            diagnostic_text=message.get('diagnostic_text') or None,
            fatal_error_text=message.get('fatal_error_text') or None,
        )
