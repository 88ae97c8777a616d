"""Tests for structured logging functionality."""
import pytest
import logging
import os
from unittest.mock import patch
from pathlib import Path
import sys

# Add project root to path
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from annotation_dispatch.infrastructure.logging import (
    LoggingContext, StructuredLogger, get_logger, log_operation, worker_scope,
    dispatch_context, run_context, worker_context
)


class TestStructuredLogger:
    """Test structured logging functionality."""

    def setup_method(self):
        run_context.set(None)
        dispatch_context.set(None)
        worker_context.set(None)

    def test_logger_creation(self):
        logger = get_logger("test.module")
        assert isinstance(logger, StructuredLogger)
        assert logger.name == "test.module"
        assert get_logger("test.module") is logger

    def test_plain_logger_name_still_structured(self):
        logging.getLogger("test.preexisting")

        logger = get_logger("test.preexisting")

        assert isinstance(logger, StructuredLogger)

    def test_context_injected(self):
        logger = get_logger("test.structured")
        logger.setLevel(logging.DEBUG)
        dispatch_context.set("abcd1234-1")
        worker_context.set(3)

        with patch.object(logging.Logger, '_log') as mock_log:
            logger.info("Test message", extra={'context': {'records': 10}})

            context = mock_log.call_args.kwargs['extra']['context']
            assert context['dispatch_id'] == "abcd1234-1"
            assert context['worker_sequence'] == 3
            assert context['records'] == 10
            assert context['logger_name'] == "test.structured"
            assert 'run_id' not in context

    def test_traceback_from_exception_instance(self):
        logger = get_logger("test.errors")

        try:
            raise ValueError("Test error for traceback")
        except ValueError as e:
            error = e

        with patch.object(logging.Logger, '_log') as mock_log:
            logger.log_error_with_context(error, operation='dispatch', records=5)

            extra = mock_log.call_args.kwargs['extra']
            assert "ValueError: Test error for traceback" in extra['traceback']
            assert extra['context']['error_type'] == 'ValueError'
            assert extra['context']['operation'] == 'dispatch'
            assert mock_log.call_args.kwargs["exc_info"] is None

    def test_bound_fields(self):
        logger = get_logger("test.context")
        logger.bind(input_file="variants.txt", fork=4)
        logger.unbind("fork")

        with patch.object(logging.Logger, '_log') as mock_log:
            logger.warning("Test with context")

            context = mock_log.call_args.kwargs['extra']['context']
            assert context['input_file'] == "variants.txt"
            assert 'fork' not in context

        logger.unbind("input_file")

    def test_log_performance(self):
        logger = get_logger("test.performance")
        logger.setLevel(logging.DEBUG)

        with patch.object(logging.Logger, '_log') as mock_log:
            logger.log_performance("dispatch", duration=2.0, items_processed=1000, workers=4)

            assert "Performance: dispatch" in mock_log.call_args.args[1]
            perf = mock_log.call_args.kwargs['extra']['performance']
            assert perf['duration_seconds'] == 2.0
            assert perf['items_per_second'] == 500.0
            assert perf['workers'] == 4

    def test_loose_extra_keys_join_context(self):
        logger = get_logger("test.loose")

        with patch.object(logging.Logger, '_log') as mock_log:
            logger.warning("Retrying", extra={'attempt': 2})

            context = mock_log.call_args.kwargs['extra']['context']
            assert context['attempt'] == 2

    def test_worker_pid_added_in_worker_scope(self):
        logger = get_logger("test.worker")

        with worker_scope(4):
            with patch.object(logging.Logger, '_log') as mock_log:
                logger.warning("inside worker")

        context = mock_log.call_args.kwargs['extra']['context']
        assert context['worker_sequence'] == 4
        assert context['worker_pid'] == os.getpid()


class TestLoggingContext:
    """Test dispatch correlation."""

    def setup_method(self):
        run_context.set(None)
        dispatch_context.set(None)

    def test_dispatch_ids_are_sequential(self):
        ctx = LoggingContext("run-0123456789")

        with ctx.dispatch(records=10) as first:
            assert run_context.get() == "run-0123456789"
            assert dispatch_context.get() == first
        with ctx.dispatch(records=5) as second:
            pass

        assert first == "run-0123-1"
        assert second == "run-0123-2"
        assert dispatch_context.get() is None
        assert run_context.get() is None

    def test_failed_dispatch_recorded(self):
        ctx = LoggingContext()

        with pytest.raises(RuntimeError):
            with ctx.dispatch(records=3, workers=2):
                raise RuntimeError("worker died")

        timings = list(ctx.get_timings().values())
        assert timings[0]['status'] == 'failed'
        assert timings[0]['records'] == 3
        assert dispatch_context.get() is None

    def test_worker_scope(self):
        with worker_scope(7):
            assert worker_context.get() == 7
        assert worker_context.get() is None


class TestLogOperation:

    def test_result_count_logged(self):
        @log_operation("count_things")
        def count_things():
            return 42

        with patch.object(StructuredLogger, 'log_performance') as mock_perf:
            assert count_things() == 42

            args, kwargs = mock_perf.call_args
            assert args[0] == "count_things"
            assert kwargs['items_processed'] == 42
            assert kwargs['status'] == 'success'

    def test_failure_reraised(self):
        @log_operation()
        def explode():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            explode()
