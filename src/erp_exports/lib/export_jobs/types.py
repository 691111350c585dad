"""Data types for the export job engine.

Defines export formats and job statuses, the ExportJob lifecycle record,
the normalized export request, and the closed set of submission results.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from enum import StrEnum
from typing import Literal

from erp_exports.core.errors import InvalidExportRequest
from erp_exports.lib.export_jobs.resources import TRANSACTIONS, ExportResource


class ExportFormat(StrEnum):
    """Output format of an export."""

    CSV = "csv"
    EXCEL = "excel"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        """File extension for this format (without the dot)."""
        return _EXTENSIONS[self]


_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.CSV: "csv",
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.PDF: "pdf",
}


class JobStatus(StrEnum):
    """Status of a background export job, in state-machine order."""

    PENDING = "PENDING"
    STARTED = "STARTED"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILURE)

    @property
    def rank(self) -> int:
        """Position in the state machine; terminal states share the last rank."""
        return _STATUS_RANK[self]


_STATUS_RANK: dict[JobStatus, int] = {
    JobStatus.PENDING: 0,
    JobStatus.STARTED: 1,
    JobStatus.SUCCESS: 2,
    JobStatus.FAILURE: 2,
}

# Task-queue state names that are reported by some backends
_STATUS_ALIASES: dict[str, JobStatus] = {
    "PROGRESS": JobStatus.STARTED,
    "RETRY": JobStatus.STARTED,
    "REVOKED": JobStatus.FAILURE,
}


def parse_job_status(value: object) -> JobStatus:
    """Map a backend status string to a JobStatus.

    Args:
        value: Raw ``status`` value from a status response.

    Returns:
        The matching JobStatus.

    Raises:
        ValueError: If the value is not a known status.
    """
    if not isinstance(value, str):
        msg = f"status must be a string, got {type(value).__name__}"
        raise ValueError(msg)
    normalized = value.strip().upper()
    if normalized in _STATUS_ALIASES:
        return _STATUS_ALIASES[normalized]
    try:
        return JobStatus(normalized)
    except ValueError:
        msg = f"Unknown job status {value!r}"
        raise ValueError(msg) from None


SYNC_TASK_PREFIX = "sync-"


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Progress:
    """Progress counters reported while a job is STARTED."""

    current: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return min(100, int(self.current * 100 / self.total))


@dataclass
class ExportJob:
    """Lifecycle record of one export request.

    Attributes:
        task_id: Backend task identifier, or a ``sync-`` placeholder.
        format: Output format.
        status: Current status.
        progress: Progress counters (only while STARTED).
        file_path: Server-side or local path of the file (only on SUCCESS).
        file_name: File name to save the result under (only on SUCCESS).
        created_at: Epoch milliseconds when tracking began.
        completed_at: Epoch milliseconds when a terminal status was reached.
        error: Failure reason (only on FAILURE).
    """

    task_id: str
    format: ExportFormat
    status: JobStatus = JobStatus.PENDING
    progress: Progress | None = None
    file_path: str | None = None
    file_name: str | None = None
    created_at: int = field(default_factory=now_ms)
    completed_at: int | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_sync(self) -> bool:
        return self.task_id.startswith(SYNC_TASK_PREFIX)

    def snapshot(self) -> ExportJob:
        """Return an independent copy for publishing to subscribers."""
        return replace(self)


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range filter."""

    from_date: date | None = None
    to_date: date | None = None

    def __post_init__(self) -> None:
        if self.from_date and self.to_date and self.from_date > self.to_date:
            msg = f"from_date {self.from_date} is after to_date {self.to_date}"
            raise InvalidExportRequest(msg)


@dataclass(frozen=True)
class ExportParams:
    """A user's export selection before normalization.

    Attributes:
        format: Requested output format.
        entity_filters: Resource-specific filters (e.g. account_id,
            transaction_type).  None or blank values are dropped.
        date_range: Optional date range.
    """

    format: ExportFormat
    entity_filters: Mapping[str, str | None] = field(default_factory=dict)
    date_range: DateRange | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "format", ExportFormat(str(self.format).lower()))
        except ValueError:
            msg = f"Unsupported format: {self.format}. Supported: {[f.value for f in ExportFormat]}"
            raise InvalidExportRequest(msg) from None

    def normalized_filters(self, resource: ExportResource = TRANSACTIONS) -> dict[str, str]:
        """Filters to send to the backend, without the format key.

        Absent values are omitted rather than sent as empty strings.  The
        date range is sent under the resource's own date parameter names.

        Raises:
            InvalidExportRequest: If a filter is not accepted by ``resource``.
        """
        filters: dict[str, str] = {}
        for key, value in self.entity_filters.items():
            if value is None:
                continue
            text = str(value).strip()
            if not text:
                continue
            if key not in resource.filter_keys:
                accepted = ", ".join(sorted(resource.filter_keys)) or "none"
                msg = f"Filter '{key}' is not supported for {resource.name} exports (accepted: {accepted})"
                raise InvalidExportRequest(msg)
            filters[key] = text
        if self.date_range is not None:
            start_key, end_key = resource.date_params
            if self.date_range.from_date:
                filters[start_key] = self.date_range.from_date.isoformat()
            if self.date_range.to_date:
                filters[end_key] = self.date_range.to_date.isoformat()
        return filters

    def to_request_body(self, resource: ExportResource = TRANSACTIONS) -> dict[str, str]:
        """Full JSON body for the export endpoint of ``resource``."""
        return {"format": self.format.value, **self.normalized_filters(resource)}


@dataclass(frozen=True)
class AsyncSubmission:
    """The backend queued the export; track ``task_id`` for completion."""

    task_id: str
    kind: Literal["async"] = "async"


@dataclass(frozen=True)
class SyncSubmission:
    """The file is already available at ``file_path``.

    ``generated_locally`` is True when the file was produced by the
    direct-fetch fallback and written to the local download directory.
    """

    file_path: str
    file_name: str
    kind: Literal["sync"] = "sync"
    generated_locally: bool = False


SubmissionResult = AsyncSubmission | SyncSubmission
