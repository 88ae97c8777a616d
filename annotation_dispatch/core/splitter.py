# annotation_dispatch/core/splitter.py
"""Sub-chunk sizing for forked dispatch.

Sub-chunks start large while plenty of work remains and shrink as the chunk
drains, so the last workers to start finish at roughly the same time as the
first ones.
"""

DEFAULT_MIN_SUB_CHUNK_SIZE = 50
DEFAULT_DELTA = 0.5


def max_sub_chunk_size(buffer_size: int, parallelism: int) -> int:
    """Largest sub-chunk handed to one worker: floor(buffer / (2 * parallelism))."""
    if parallelism < 1:
        raise ValueError(f"parallelism must be >= 1, got {parallelism}")
    if buffer_size < 1:
        raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
    return buffer_size // (2 * parallelism)


def next_sub_chunk_size(remaining: int,
                        parallelism: int,
                        active_workers: int,
                        buffer_size: int,
                        min_sub_chunk_size: int = DEFAULT_MIN_SUB_CHUNK_SIZE,
                        delta: float = DEFAULT_DELTA) -> int:
    """Number of records to hand to the next spawned worker.

    size = floor(remaining / (parallelism * (1 + delta)) + min_sub_chunk_size) + 1,
    clamped to [1, min(remaining, max_sub_chunk_size)].

    Args:
        remaining: Records of the current chunk not yet assigned (>= 1)
        parallelism: Target number of concurrent workers (>= 1)
        active_workers: Workers currently running; at most parallelism + 1
        buffer_size: Configured chunk size
        min_sub_chunk_size: Additive floor of the formula
        delta: Oversubscription factor

    Returns:
        Sub-chunk size
    """
    if remaining < 1:
        raise ValueError(f"remaining must be >= 1, got {remaining}")
    if not 0 <= active_workers <= parallelism + 1:
        raise ValueError(
            f"active_workers must be within [0, {parallelism + 1}], got {active_workers}"
        )
    if min_sub_chunk_size < 0:
        raise ValueError(f"min_sub_chunk_size must be >= 0, got {min_sub_chunk_size}")
    if delta < 0:
        raise ValueError(f"delta must be >= 0, got {delta}")

    upper = min(remaining, max_sub_chunk_size(buffer_size, parallelism))
    size = int(remaining / (parallelism * (1 + delta)) + min_sub_chunk_size) + 1

    return max(1, min(size, upper))
