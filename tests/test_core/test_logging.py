"""Tests for logging setup."""

import json
import logging
from datetime import date
from unittest.mock import patch

from nextbestmove.core.logging import (
    ConsoleFormatter,
    JSONFormatter,
    bind_context,
    get_logger,
    reset_logging,
    setup_logging,
    split_context,
)


def _record(context=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="nextbestmove.engine.scoring",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Scored action",
        args=(),
        exc_info=None,
    )
    if context is not None:
        record.context = context
    return record


class TestLogging:
    """Test logging configuration."""

    def test_get_logger_returns_logger(self):
        """get_logger returns a Logger instance."""
        logger = get_logger(__name__)
        assert isinstance(logger, logging.Logger)

    def test_get_logger_namespaced(self):
        """Loggers live under the nextbestmove namespace, without doubling it."""
        assert get_logger("tests.module").name == "nextbestmove.tests.module"
        assert get_logger("nextbestmove.engine").name == "nextbestmove.engine"

    def test_get_logger_same_name_returns_same_logger(self):
        """Same name returns same logger instance."""
        assert get_logger("test.module") is get_logger("test.module")

    def test_setup_logging_creates_handlers(self, tmp_path):
        """setup_logging creates file and console handlers, once."""
        root_logger = logging.getLogger("nextbestmove")
        reset_logging()
        existing = len(root_logger.handlers)
        try:
            log_file = setup_logging(log_dir=tmp_path / "logs")
            assert log_file == tmp_path / "logs" / "nextbestmove.log"
            assert log_file.exists()
            assert len(root_logger.handlers) == existing + 2

            setup_logging(log_dir=tmp_path / "logs")
            assert len(root_logger.handlers) == existing + 2
        finally:
            reset_logging()
        assert len(root_logger.handlers) == existing

    def test_file_log_lines_are_json(self, tmp_path):
        reset_logging()
        try:
            log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.CRITICAL)
            get_logger("engine.test").info(
                "Best action selected", extra={"context": {"user_id": "u1", "score": 38.0}}
            )
            for handler in logging.getLogger("nextbestmove").handlers:
                handler.flush()
            lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        finally:
            reset_logging()
        assert lines[-1]["user_id"] == "u1"
        assert lines[-1]["context"] == {"score": 38.0}


class TestSplitContext:
    """Entity ids are separated from the remaining fields."""

    def test_splits_ids(self):
        entities, rest = split_context({"score": 1, "action_id": "a1", "user_id": "u1"})
        assert entities == {"user_id": "u1", "action_id": "a1"}
        assert rest == {"score": 1}

    def test_none_ids_dropped(self):
        entities, rest = split_context({"relationship_id": None, "lane": "priority"})
        assert entities == {}
        assert rest == {"lane": "priority"}

    def test_empty(self):
        assert split_context(None) == ({}, {})


class TestFormatters:
    """Test JSON and console formatting."""

    def test_json_formatter_promotes_ids(self):
        data = json.loads(JSONFormatter().format(_record({"action_id": "a1", "score": 72})))
        assert data["message"] == "Scored action"
        assert data["level"] == "INFO"
        assert data["module"] == "nextbestmove.engine.scoring"
        assert data["action_id"] == "a1"
        assert data["context"] == {"score": 72}

    def test_json_formatter_ids_only(self):
        data = json.loads(JSONFormatter().format(_record({"user_id": "u1"})))
        assert data["user_id"] == "u1"
        assert "context" not in data

    def test_json_formatter_without_context(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert "context" not in data
        assert "user_id" not in data
        assert data["timestamp"].endswith("Z")

    def test_json_formatter_non_native_values(self):
        data = json.loads(JSONFormatter().format(_record({"date": date(2026, 3, 2)})))
        assert data["context"] == {"date": "2026-03-02"}

    def test_console_formatter_leads_with_ids(self):
        line = ConsoleFormatter().format(
            _record({"action_id": "a1", "user_id": "u1", "score": 72})
        )
        assert "user=u1 action=a1 | Scored action [score=72]" in line

    def test_console_formatter_without_context(self):
        line = ConsoleFormatter().format(_record())
        assert line.endswith("nextbestmove.engine.scoring: Scored action")


class TestBindContext:
    """Bound context is merged into every record."""

    def _capture(self, adapter, **kwargs):
        with patch.object(adapter.logger, "handle") as handle:
            adapter.logger.setLevel(logging.DEBUG)
            adapter.info("Scored action", **kwargs)
        return handle.call_args[0][0]

    def test_bound_fields_added(self):
        adapter = bind_context(get_logger("tests.bind"), user_id="u1")
        record = self._capture(adapter)
        assert record.context == {"user_id": "u1"}

    def test_call_fields_merged_and_win(self):
        adapter = bind_context(get_logger("tests.bind"), user_id="u1", lane="on_deck")
        record = self._capture(adapter, extra={"context": {"lane": "priority", "score": 3}})
        assert record.context == {"user_id": "u1", "lane": "priority", "score": 3}
