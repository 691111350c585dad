"""Error taxonomy shared by the export client, builder, tracker and encoders.

Every error carries a human-readable ``message`` that is safe to show to
the user as a notification.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from erp_exports.lib.export_jobs.types import ExportJob


class ExportError(Exception):
    """Base class for all export errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidExportRequest(ExportError, ValueError):
    """Raised when export parameters are rejected before any request is made."""


class ExportApiError(ExportError):
    """Raised when a backend request fails (transport error, HTTP error, bad body).

    Args:
        message: Human-readable error description.
        status_code: Optional HTTP status code returned by the backend.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ExportSubmissionError(ExportError):
    """Raised when both the primary submission and the direct-fetch fallback fail."""


class PollTransientError(ExportError):
    """A single failed status poll.  Recovered by retrying on the next tick.

    Args:
        task_id: The task whose status could not be fetched.
        message: Human-readable error description.
    """

    def __init__(self, task_id: str, message: str) -> None:
        self.task_id = task_id
        super().__init__(f"{task_id}: {message}")


class JobFailure(ExportError):
    """The backend (or the local tracking timeout) reported a terminal FAILURE."""

    def __init__(self, job: ExportJob) -> None:
        self.job = job
        super().__init__(job.error or "Export failed, please try again")


class FileGenerationError(ExportError):
    """Raised when a CSV/PDF/Excel file cannot be generated locally."""
