"""
Parallel batch annotation.

This package reads records in bounded chunks, splits every chunk across
forked worker processes, and hands back the annotated records in their
original order.
"""

__version__ = "1.0.0"
__description__ = "Fork-based parallel dispatch of record annotation"

# Note: Modules should be imported explicitly when needed; importing the
# config package reads config.yml.

__all__ = [
    '__version__',
    '__description__',
]
