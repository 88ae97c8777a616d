"""Tests for log formatters, handlers and setup."""
import io
import json
import logging
import pytest
from pathlib import Path
import sys

# Add project root to path
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from annotation_dispatch.infrastructure.logging import (
    setup_capture_logging, setup_logging, setup_simple_logging
)
from annotation_dispatch.infrastructure.logging.formatters import (
    LEVEL_COLORS, HumanFormatter, JsonFormatter, context_tag, performance_summary
)
from annotation_dispatch.infrastructure.logging.handlers import ConsoleHandler, FileHandler


def make_record(message="Dispatch finished", level=logging.INFO, **attributes):
    record = logging.LogRecord(
        name="annotation_dispatch.core.dispatcher",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in attributes.items():
        setattr(record, key, value)
    return record


class FakeConfig:
    """Dot-notation settings, as Config.get provides."""

    def __init__(self, settings):
        self.settings = settings

    def get(self, key, default=None):
        return self.settings.get(key, default)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


class TestHumanFormatter:

    def test_context_and_performance(self):
        formatter = HumanFormatter(use_colors=False)
        record = make_record(
            context={'dispatch_id': 'abcd1234-2', 'worker_sequence': 1, 'worker_pid': 999},
            performance={'duration_seconds': 1.5, 'items_per_second': 200.0, 'workers': 4},
        )

        output = formatter.format(record)

        assert "[dispatch:abcd1234-2 worker:1 pid:999]" in output
        assert "Dispatch finished" in output
        assert "(1.500s, 200.0 records/s, 4 workers)" in output
        assert "\033[" not in output

    def test_worker_zero_shown(self):
        output = HumanFormatter(use_colors=False).format(make_record(context={'worker_sequence': 0}))
        assert "worker:0" in output

    def test_traceback_appended(self):
        record = make_record(level=logging.ERROR, traceback="Traceback...\nValueError: bad")

        output = HumanFormatter(use_colors=True).format(record)

        assert "ValueError: bad" in output
        assert LEVEL_COLORS['ERROR'] in output

    def test_context_hidden_when_disabled(self):
        record = make_record(context={'dispatch_id': 'd-1'})

        output = HumanFormatter(use_colors=False, show_context=False).format(record)

        assert "dispatch:" not in output
        assert "annotation_dispatch.core.dispatcher Dispatch finished" in output

    def test_helpers(self):
        assert context_tag(None) == ''
        assert context_tag({'run_id': 'r'}) == ''
        assert performance_summary({'duration_seconds': 0.5, 'items_processed': 10}) == "0.500s, 10 records"
        assert performance_summary({'workers': 0}) == ''


class TestJsonFormatter:

    def test_single_line_json(self):
        record = make_record(
            context={'dispatch_id': 'd-1'},
            performance={'duration_seconds': 0.25},
        )

        output = JsonFormatter().format(record)
        data = json.loads(output)

        assert "\n" not in output
        assert data['message'] == "Dispatch finished"
        assert data['level'] == "INFO"
        assert data['context'] == {'dispatch_id': 'd-1'}
        assert data['performance']['duration_seconds'] == 0.25


class TestHandlers:

    def test_console_without_tty_has_no_colors(self):
        handler = ConsoleHandler(stream=io.StringIO())
        assert handler.formatter.use_colors is False

    def test_no_color_respected(self, monkeypatch):
        class FakeTty(io.StringIO):
            def isatty(self):
                return True

        monkeypatch.setenv('NO_COLOR', '1')
        assert ConsoleHandler(stream=FakeTty()).formatter.use_colors is False

        monkeypatch.delenv('NO_COLOR')
        monkeypatch.setenv('TERM', 'xterm')
        assert ConsoleHandler(stream=FakeTty()).formatter.use_colors is True

    def test_file_handler_writes_json(self, tmp_path):
        path = tmp_path / "logs" / "dispatch.log"
        handler = FileHandler(str(path))

        handler.emit(make_record(context={'dispatch_id': 'd-9'}))
        handler.close()

        line = path.read_text().strip()
        assert json.loads(line)['context']['dispatch_id'] == 'd-9'


class TestSetup:

    def test_setup_logging_with_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "run.log"
        settings = FakeConfig({'logging.level': 'WARNING'})

        setup_logging(settings, log_file=str(log_file))

        kinds = {type(handler) for handler in restore_root_logger.handlers}
        assert kinds == {ConsoleHandler, FileHandler}
        assert restore_root_logger.level == logging.WARNING

    def test_explicit_level_wins(self, restore_root_logger):
        setup_logging(FakeConfig({'logging.level': 'WARNING'}), console=False, log_level='debug')

        assert restore_root_logger.level == logging.DEBUG
        assert restore_root_logger.handlers == []

    def test_simple_logging(self, restore_root_logger):
        setup_simple_logging('ERROR')

        assert len(restore_root_logger.handlers) == 1
        assert restore_root_logger.level == logging.ERROR

    def test_capture_logging(self, restore_root_logger):
        stream = io.StringIO()
        noisy = logging.getLogger("test.capture.noisy")
        noisy.addHandler(logging.NullHandler())
        noisy.propagate = False

        setup_capture_logging(stream)
        noisy.warning("captured warning")
        noisy.info("dropped info")

        assert "captured warning" in stream.getvalue()
        assert "dropped info" not in stream.getvalue()
        assert noisy.handlers == []
        assert noisy.propagate is True
