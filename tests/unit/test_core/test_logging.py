"""Unit tests for logging configuration."""

import json
from pathlib import Path

from loguru import logger

from erp_exports.core.logging import JOB_EVENTS_FILE_NAME, LOG_FILE_NAME, setup_logging


class TestLogging:
    """Tests for Loguru logging setup."""

    def teardown_method(self) -> None:
        setup_logging("INFO")

    def test_setup_logging_does_not_raise(self) -> None:
        """setup_logging with valid log level does not raise."""
        setup_logging("DEBUG")
        setup_logging("INFO")
        setup_logging("WARNING")

    def test_setup_logging_case_insensitive(self) -> None:
        """setup_logging accepts case-insensitive log levels."""
        setup_logging("info")
        setup_logging("debug")

    def test_file_sink_tags_task_id(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs"
        setup_logging("INFO", log_dir=str(log_dir))
        logger.info("untagged record")
        logger.bind(task_id="t-42").info("tagged record")
        logger.complete()

        lines = (log_dir / LOG_FILE_NAME).read_text().splitlines()
        assert "| -" in next(line for line in lines if "untagged record" in line)
        assert "| t-42" in next(line for line in lines if "tagged record" in line)

    def test_job_events_written_as_json_lines(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs"
        setup_logging("INFO", log_dir=str(log_dir))
        logger.info("not an event")
        logger.bind(task_id="t-1", job_event=True).info("Export job t-1 completed")
        logger.complete()

        events = [json.loads(line) for line in (log_dir / JOB_EVENTS_FILE_NAME).read_text().splitlines()]
        assert len(events) == 1
        record = events[0]["record"]
        assert record["message"] == "Export job t-1 completed"
        assert record["extra"]["task_id"] == "t-1"

    def test_no_files_without_log_dir(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        setup_logging("INFO")
        logger.info("stderr only")

        assert list(tmp_path.iterdir()) == []
