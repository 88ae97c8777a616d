"""Tests for the worker execution wrapper, run in the test process."""
import logging
import os
import sys
import warnings
import pytest
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from annotation_dispatch.abstractions.interfaces import Annotator
from annotation_dispatch.config import FaultInjection
from annotation_dispatch.core.channel import open_channel
from annotation_dispatch.core.envelope import ResultEnvelope
from annotation_dispatch.core.worker import (
    TEST_DIE, TEST_WARNING, annotate_chunk, execute_sub_chunk, run_worker
)


class TaggingAnnotator(Annotator):
    """Appends a tag to dict records in place."""

    def __init__(self):
        self.resets = 0

    def annotate(self, chunk):
        for record in chunk:
            record['tag'] = record['id'] * 2

    def reset_after_fork(self):
        self.resets += 1


class NoisyAnnotator(Annotator):
    def annotate(self, chunk):
        print("progress to stderr", file=sys.stderr)
        logging.getLogger('third.party').warning("library warning")
        warnings.warn("deprecated option")
        return [f"{record}!" for record in chunk]


class FailingAnnotator(Annotator):
    def annotate(self, chunk):
        chunk[0] = 'partially written'
        raise ValueError("bad record 3")


@pytest.fixture
def restore_logging():
    """execute_sub_chunk reconfigures logging the way a fresh worker does."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


class TestAnnotateChunk:

    def test_in_place_annotation_returns_chunk(self):
        records = [{'id': 1}, {'id': 2}]

        output = annotate_chunk(TaggingAnnotator(), records)

        assert output is records
        assert output == [{'id': 1, 'tag': 2}, {'id': 2, 'tag': 4}]

    def test_returned_list_replaces_chunk(self):
        output = annotate_chunk(NoisyAnnotator(), ['a', 'b'])
        assert output == ['a!', 'b!']

    def test_plain_callable(self):
        assert annotate_chunk(lambda chunk: chunk[::-1], [1, 2, 3]) == [3, 2, 1]


@pytest.mark.usefixtures('restore_logging')
class TestExecuteSubChunk:

    def test_success(self):
        annotator = TaggingAnnotator()

        envelope = execute_sub_chunk(annotator, [{'id': 3}], sequence=0)

        assert envelope.worker_pid == os.getpid()
        assert envelope.output_records == [{'id': 3, 'tag': 6}]
        assert envelope.diagnostic_text is None
        assert not envelope.failed
        assert annotator.resets == 1

    def test_diagnostics_captured(self):
        with warnings.catch_warnings():
            warnings.simplefilter('always')
            envelope = execute_sub_chunk(NoisyAnnotator(), ['x'], sequence=0)

        assert envelope.output_records == ['x!']
        assert "progress to stderr" in envelope.diagnostic_text
        assert "library warning" in envelope.diagnostic_text
        assert "deprecated option" in envelope.diagnostic_text

    def test_failure_discards_partial_output(self):
        envelope = execute_sub_chunk(FailingAnnotator(), ['a', 'b'], sequence=0)

        assert envelope.failed
        assert envelope.output_records is None
        assert "ValueError: bad record 3" in envelope.fatal_error_text

    def test_injected_warning(self):
        envelope = execute_sub_chunk(
            TaggingAnnotator(), [{'id': 1}], sequence=0,
            fault_injection=FaultInjection(warning=True)
        )

        assert TEST_WARNING in envelope.diagnostic_text
        assert envelope.output_records == [{'id': 1, 'tag': 2}]

    def test_injected_die(self):
        envelope = execute_sub_chunk(
            TaggingAnnotator(), [{'id': 1}], sequence=2,
            fault_injection=FaultInjection(die=True)
        )

        assert envelope.failed
        assert TEST_DIE in envelope.fatal_error_text

    def test_injection_limited_to_one_sequence(self):
        faults = FaultInjection(die=True, sequence=1)

        healthy = execute_sub_chunk(TaggingAnnotator(), [{'id': 1}], 0, faults)
        failed = execute_sub_chunk(TaggingAnnotator(), [{'id': 1}], 1, faults)

        assert not healthy.failed
        assert failed.failed


@pytest.mark.usefixtures('restore_logging')
class TestRunWorker:

    def setup_method(self):
        self.parent, self.child = open_channel()

    def teardown_method(self):
        self.parent.close()
        self.child.close()

    def test_sends_one_envelope_and_closes(self):
        run_worker(TaggingAnnotator(), [{'id': 5}], self.child, sequence=0)

        envelope = ResultEnvelope.from_message(self.parent.recv_message())

        assert self.child.closed
        assert envelope.output_records == [{'id': 5, 'tag': 10}]

    def test_unserializable_output_reported_as_fatal(self):
        run_worker(lambda chunk: [lambda: record for record in chunk],
                   [1, 2], self.child, sequence=0)

        envelope = ResultEnvelope.from_message(self.parent.recv_message())

        assert envelope.failed
        assert "could not be serialized" in envelope.fatal_error_text
        assert envelope.output_records is None
