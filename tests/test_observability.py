"""Tests for logging setup, metrics and tracing."""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from andtask.observability import (
    MetricsCollector,
    configure_logging,
    metrics,
    operation_span,
    traced,
)


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_record_success_and_failure(self):
        collector = MetricsCollector()

        collector.record("add_todo", 2.0)
        collector.record("add_todo", 4.0, error="boom")

        m = collector.get_metrics()["add_todo"]
        assert m["count"] == 2
        assert m["success_count"] == 1
        assert m["error_count"] == 1
        assert m["success_rate"] == 0.5
        assert m["avg_duration_ms"] == 3.0
        assert m["min_duration_ms"] == 2.0
        assert m["max_duration_ms"] == 4.0
        assert m["last_error"] == "boom"
        assert m["last_error_time"] is not None

    def test_operations_kept_apart(self):
        collector = MetricsCollector()
        collector.record("search", 1.0)
        collector.record("list_notes", 1.0, error="x")

        tracked = collector.get_metrics()

        assert set(tracked) == {"search", "list_notes"}
        assert tracked["search"]["error_count"] == 0
        assert tracked["search"]["last_error"] is None

    def test_reset(self):
        collector = MetricsCollector()
        collector.record("search", 1.0)

        collector.reset()

        assert collector.get_metrics() == {}


class TestTracing:
    """Tests for operation_span() and traced()."""

    def setup_method(self):
        metrics.reset()

    def test_span_records_success(self):
        with operation_span("unit_op", id="t1") as span:
            span["result_count"] = 3

        assert metrics.get_metrics()["unit_op"]["success_count"] == 1
        assert len(span["correlation_id"]) == 8

    def test_span_records_error_and_reraises(self):
        with pytest.raises(RuntimeError):
            with operation_span("failing_op"):
                raise RuntimeError("nope")

        m = metrics.get_metrics()["failing_op"]
        assert m["error_count"] == 1
        assert m["last_error"] == "nope"

    def test_traced_uses_function_name(self):
        @traced()
        def list_things():
            return [1, 2]

        assert list_things() == [1, 2]
        assert metrics.get_metrics()["list_things"]["count"] == 1

    def test_traced_explicit_name(self):
        @traced("custom")
        def anything(query=None):
            return None

        anything(query="hello")
        assert "custom" in metrics.get_metrics()

    def test_traced_logs_positional_id(self, caplog):
        @traced("lookup")
        def lookup(id):
            return [id]

        with caplog.at_level(logging.DEBUG, logger="andtask.observability"):
            lookup("t42")

        messages = [r.getMessage() for r in caplog.records]
        assert any("lookup start id='t42'" in m for m in messages)
        assert any("lookup ok" in m and "result_count=1" in m for m in messages)

    def test_record_store_operations_are_traced(self, record_store):
        record_store.add_todo("t1", "Traced")
        record_store.list_todos()
        record_store.search("Traced")

        tracked = record_store.get_metrics()
        assert {"add_todo", "list_todos", "search"} <= set(tracked)


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_writes_rotating_log_file(self, tmp_path):
        root_logger = logging.getLogger("andtask")
        before = list(root_logger.handlers)
        try:
            log_dir = configure_logging(log_dir=tmp_path, console=False)
            logging.getLogger("andtask.storage.note_repository").info("hello log")
            for handler in root_logger.handlers:
                handler.flush()

            assert log_dir == tmp_path
            content = (tmp_path / "andtask.log").read_text(encoding="utf-8")
            assert "hello log" in content
            assert "[INFO] andtask.storage.note_repository" in content
        finally:
            for handler in root_logger.handlers[:]:
                if handler not in before:
                    handler.close()
                    root_logger.removeHandler(handler)

    def test_repeat_call_does_not_duplicate_handlers(self, tmp_path):
        root_logger = logging.getLogger("andtask")
        before = list(root_logger.handlers)
        try:
            configure_logging(log_dir=tmp_path, console=True)
            configure_logging(log_dir=tmp_path, console=True)

            added = [h for h in root_logger.handlers if h not in before]
            assert len([h for h in added if isinstance(h, RotatingFileHandler)]) == 1
            assert len([h for h in added if type(h) is logging.StreamHandler]) <= 1
        finally:
            for handler in root_logger.handlers[:]:
                if handler not in before:
                    handler.close()
                    root_logger.removeHandler(handler)
