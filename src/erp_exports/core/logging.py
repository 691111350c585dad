"""Loguru logging configuration.

Human-readable stderr logging tagged with the export task id of each
record.  When a ``log_dir`` is provided, a rotating text log and a JSON
lines file of job lifecycle events (records bound with ``job_event=True``)
are written there as well.
"""

import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[task_id]:<14} | {name}:{function}:{line} | {message}"
)

LOG_FILE_NAME = "erp-exports.log"
JOB_EVENTS_FILE_NAME = "export-jobs.jsonl"


def _is_job_event(record: dict) -> bool:
    return bool(record["extra"].get("job_event"))


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure Loguru sinks.

    Records logged without a bound ``task_id`` show ``-`` in its place.

    Args:
        log_level: Minimum log level to emit.
        log_dir: Optional directory for log files.  When set, a rotating
            text log (24 hours, retained 7 days) and a job events file
            (rotated at 10 MB, retained 30 days) are added.
    """
    level = log_level.upper()
    logger.remove()
    logger.configure(extra={"task_id": "-"})
    logger.add(sys.stderr, level=level, format=_LOG_FORMAT)

    if not log_dir:
        return

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path / LOG_FILE_NAME,
        level=level,
        format=_LOG_FORMAT,
        rotation="24h",
        retention="7 days",
    )
    logger.add(
        log_path / JOB_EVENTS_FILE_NAME,
        level="INFO",
        serialize=True,
        filter=_is_job_event,
        rotation="10 MB",
        retention="30 days",
    )
