# annotation_dispatch/config/dispatch_config.py
"""Configuration classes for forked dispatch."""

import multiprocessing
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any

from . import defaults


@dataclass(frozen=True)
class FaultInjection:
    """
    Deterministic failure injection for tests.

    Travels with the dispatch configuration into every worker; nothing is
    stored in module or class state.
    """
    warning: bool = False  # emit 'TEST WARNING' as a diagnostic
    die: bool = False  # raise 'TEST DIE' before annotating
    sequence: Optional[int] = None  # only this spawn sequence number; None = all workers

    def applies_to(self, sequence: int) -> bool:
        return self.sequence is None or self.sequence == sequence

    @property
    def active(self) -> bool:
        return self.warning or self.die


@dataclass
class DispatchConfig:
    """
    Settings for one dispatcher.

    fork is the target number of concurrent worker processes; 0 or None
    selects the in-process sequential path.
    """
    fork: Optional[int] = defaults.DISPATCH['fork']
    buffer_size: int = defaults.DISPATCH['buffer_size']
    min_sub_chunk_size: int = defaults.DISPATCH['min_sub_chunk_size']
    delta: float = defaults.DISPATCH['delta']
    start_method: str = defaults.DISPATCH['start_method']
    worker_timeout: Optional[float] = defaults.DISPATCH['worker_timeout']
    terminate_grace_seconds: float = defaults.DISPATCH['terminate_grace_seconds']
    fault_injection: Optional[FaultInjection] = field(default=None, compare=False)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on settings the dispatcher cannot honour."""
        if self.fork is not None and (isinstance(self.fork, bool) or self.fork < 0):
            raise ValueError(f"fork must be a non-negative integer or None, got {self.fork!r}")
        if self.buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {self.buffer_size}")
        if self.min_sub_chunk_size < 0:
            raise ValueError(f"min_sub_chunk_size must be >= 0, got {self.min_sub_chunk_size}")
        if self.delta < 0:
            raise ValueError(f"delta must be >= 0, got {self.delta}")
        if self.start_method not in multiprocessing.get_all_start_methods():
            raise ValueError(
                f"start_method {self.start_method!r} is not available on this platform; "
                f"choose one of {multiprocessing.get_all_start_methods()}"
            )
        if self.worker_timeout is not None and self.worker_timeout <= 0:
            raise ValueError(f"worker_timeout must be > 0 or None, got {self.worker_timeout}")
        if self.terminate_grace_seconds < 0:
            raise ValueError(
                f"terminate_grace_seconds must be >= 0, got {self.terminate_grace_seconds}"
            )

    @property
    def parallel(self) -> bool:
        """True when chunks are dispatched to worker processes."""
        return bool(self.fork)

    @property
    def parallelism(self) -> int:
        return self.fork or 1

    @property
    def max_sub_chunk_size(self) -> int:
        return self.buffer_size // (2 * self.parallelism)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DispatchConfig':
        """Create from dictionary, ignoring unknown keys."""
        valid_keys = {
            'fork', 'buffer_size', 'min_sub_chunk_size', 'delta',
            'start_method', 'worker_timeout', 'terminate_grace_seconds',
        }
        filtered_data = {k: v for k, v in data.items() if k in valid_keys}

        faults = data.get('fault_injection')
        if isinstance(faults, dict):
            faults = FaultInjection(**faults)
        if faults is not None:
            filtered_data['fault_injection'] = faults

        return cls(**filtered_data)

    @classmethod
    def from_config(cls, config=None, **overrides) -> 'DispatchConfig':
        """Build from the 'dispatch' section of a Config, then apply overrides."""
        if config is None:
            from .config import config as global_config
            config = global_config

        data = dict(config.get('dispatch', {}) or {})
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)
