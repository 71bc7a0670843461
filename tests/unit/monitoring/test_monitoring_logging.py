"""
Unit tests for logging setup and context injection.
"""

import json
import logging

from citypulse.monitoring.logging import (
    JsonFormatter,
    TextFormatter,
    setup_logging,
    with_context,
)


def make_record(msg="Blob failed", **extra):
    record = logging.LogRecord("citypulse.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    def test_text_formatter_with_context(self):
        record = make_record(run_id="abc123", source_id="crawler", stage="extract")
        assert TextFormatter().format(record) == (
            "INFO citypulse.test [run=abc123 source=crawler stage=extract] Blob failed"
        )

    def test_text_formatter_without_context(self):
        assert TextFormatter().format(make_record()) == "INFO citypulse.test Blob failed"

    def test_json_formatter(self):
        record = make_record(run_id="abc123", rule="name_length", payload={"count": 2})
        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["msg"] == "Blob failed"
        assert data["run_id"] == "abc123"
        assert data["rule"] == "name_length"
        assert data["payload"] == {"count": 2}
        assert "stage" not in data


class TestSetupLogging:
    def test_replaces_handlers(self, tmp_path):
        setup_logging("DEBUG")
        logger = setup_logging("WARNING", log_file=tmp_path / "logs" / "run.log")

        assert logger.name == "citypulse"
        assert logger.level == logging.WARNING
        assert logger.propagate is False
        assert len(logger.handlers) == 2
        assert (tmp_path / "logs" / "run.log").exists()

    def test_json_logs(self):
        logger = setup_logging("INFO", json_logs=True)
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_writes_to_file(self, tmp_path):
        path = tmp_path / "run.log"
        setup_logging("INFO", log_file=path)
        logging.getLogger("citypulse.ingestion").info("hello from the pipeline")
        for handler in logging.getLogger("citypulse").handlers:
            handler.flush()
        assert "hello from the pipeline" in path.read_text(encoding="utf-8")


class TestWithContext:
    def test_context_fields_reach_records(self, caplog):
        logger = logging.getLogger("citypulse.test.context")
        log = with_context(logger, run_id="abc123", source_id="crawler", stage="geocode")

        with caplog.at_level(logging.INFO, logger="citypulse.test.context"):
            log.info("geocoded", extra={"rule": "none"})

        record = caplog.records[-1]
        assert record.run_id == "abc123"
        assert record.source_id == "crawler"
        assert record.stage == "geocode"
        assert record.rule == "none"

    def test_empty_values_skipped(self):
        log = with_context(logging.getLogger("citypulse.test"), run_id="abc123", stage=None)
        assert log.extra == {"run_id": "abc123"}
