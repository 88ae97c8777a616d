#!/usr/bin/env python
"""Command line entry point: annotate a text file line by line."""

import argparse
import importlib
import inspect
import sys
from pathlib import Path
from typing import List, Optional

import psutil

from .abstractions.interfaces import Annotator
from .annotators import FunctionAnnotator, PassThroughAnnotator, UpperCaseAnnotator
from .config import Config, DispatchConfig
from .core import DispatchError, Runner
from .infrastructure.logging import get_logger, setup_logging
from .sources import LineFileSource

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_DISPATCH_FAILED = 1
EXIT_USAGE = 2

BUILTIN_ANNOTATORS = {
    'passthrough': PassThroughAnnotator,
    'uppercase': UpperCaseAnnotator,
}


def parse_fork(value: str) -> int:
    """Worker count, or 'auto' for the number of physical cores."""
    if value == 'auto':
        return psutil.cpu_count(logical=False) or psutil.cpu_count() or 1
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer or 'auto', got {value!r}")
    if count < 0:
        raise argparse.ArgumentTypeError(f"fork must be >= 0, got {count}")
    return count


def load_annotator(spec: str):
    """Resolve a builtin name or 'module:attr' into an annotator.

    The attribute may be an Annotator subclass (instantiated without
    arguments), an annotator instance or a per-record function.
    """
    if spec in BUILTIN_ANNOTATORS:
        return BUILTIN_ANNOTATORS[spec]()

    module_name, sep, attr = spec.partition(':')
    if not sep or not module_name or not attr:
        raise ValueError(f"Annotator must be a builtin name or 'module:attr', got {spec!r}")

    module = importlib.import_module(module_name)
    target = module
    for part in attr.split('.'):
        target = getattr(target, part)

    if inspect.isclass(target):
        target = target()
    if isinstance(target, Annotator) or hasattr(target, 'annotate'):
        return target
    if callable(target):
        return FunctionAnnotator(target, name=attr)

    raise TypeError(f"{spec} is neither an annotator nor a callable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='annotation-dispatch',
        description='Annotate records of a text file across forked worker processes'
    )
    parser.add_argument('input', type=Path, help='Input file, one record per line')
    parser.add_argument('-o', '--output', type=Path,
                        help='Output file (default: stdout)')
    parser.add_argument('--annotator', default='passthrough',
                        help="Builtin name (passthrough, uppercase) or 'module:attr'")
    parser.add_argument('--fork', type=parse_fork,
                        help="Worker processes per chunk; 0 runs in-process, 'auto' uses all cores")
    parser.add_argument('--buffer-size', type=int,
                        help='Records read per chunk')
    parser.add_argument('--worker-timeout', type=float,
                        help='Give up when no worker reports for this many seconds')
    parser.add_argument('--config', type=Path, help='YAML config file')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Console log level')
    parser.add_argument('--log-file', type=Path, help='Rotating JSON log file')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Config(args.config) if args.config else Config()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(settings, log_file=args.log_file, log_level=args.log_level)

    if not args.input.is_file():
        logger.error(f"Input file not found: {args.input}")
        return EXIT_USAGE

    try:
        annotator = load_annotator(args.annotator)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        logger.error(f"Cannot load annotator {args.annotator!r}: {e}")
        return EXIT_USAGE

    try:
        dispatch_config = DispatchConfig.from_config(
            settings,
            fork=args.fork,
            buffer_size=args.buffer_size,
            worker_timeout=args.worker_timeout,
        )
    except ValueError as e:
        logger.error(f"Invalid dispatch settings: {e}")
        return EXIT_USAGE

    try:
        out = open(args.output, 'w') if args.output else sys.stdout
    except OSError as e:
        logger.error(f"Cannot open output file {args.output}: {e}")
        return EXIT_USAGE

    try:
        with LineFileSource(args.input) as source:
            runner = Runner(source, annotator, dispatch_config)
            count = runner.run(lambda record: out.write(f"{record}\n"))
    except DispatchError as e:
        logger.error(f"Annotation of {args.input} failed: {e}")
        return EXIT_DISPATCH_FAILED
    finally:
        if out is not sys.stdout:
            out.close()
        else:
            out.flush()

    logger.info(
        f"Annotated {count} records from {args.input}",
        extra={'context': {'chunks': runner.chunks_processed, 'fork': dispatch_config.fork}}
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
