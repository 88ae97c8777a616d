"""Abstractions shared by the dispatcher, the runner and their collaborators."""

from .interfaces import RecordSource, Annotator

__all__ = ['RecordSource', 'Annotator']
