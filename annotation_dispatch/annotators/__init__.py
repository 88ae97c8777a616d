from .builtin import FunctionAnnotator, PassThroughAnnotator, UpperCaseAnnotator

__all__ = ['FunctionAnnotator', 'PassThroughAnnotator', 'UpperCaseAnnotator']
