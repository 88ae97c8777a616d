from .record_sources import IterableRecordSource, LineFileSource

__all__ = ['IterableRecordSource', 'LineFileSource']
