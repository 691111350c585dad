"""Export job consumers: transient toasts and the in-process history panel.

Both are plain NotificationBridge subscribers.  They react to job
snapshots and never touch tracker state.
"""

from collections import deque
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from erp_exports.lib.export_jobs import ExportJob, JobStatus
from erp_exports.lib.export_jobs.types import now_ms

SUCCESS_DURATION_MS = 8000
FAILURE_DURATION_MS = 6000
INFO_DURATION_MS = 5000
MAX_TOASTS = 50
HISTORY_MAX_AGE_SECONDS = 3600


class ToastVariant(StrEnum):
    """Visual variant of a toast."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Toast:
    """A transient user notification."""

    title: str
    description: str
    variant: ToastVariant
    duration_ms: int
    task_id: str | None = None


class ToastNotifier:
    """Posts a toast when a watched export job reaches a terminal state.

    Only task ids passed to ``watch`` produce completion toasts; a watched
    id is forgotten after its toast is posted.  Only the most recent
    ``MAX_TOASTS`` toasts are kept.
    """

    def __init__(self) -> None:
        self._watched: set[str] = set()
        self.toasts: deque[Toast] = deque(maxlen=MAX_TOASTS)

    @property
    def watched(self) -> frozenset[str]:
        return frozenset(self._watched)

    def watch(self, task_id: str) -> None:
        self._watched.add(task_id)

    def unwatch(self, task_id: str) -> None:
        self._watched.discard(task_id)

    def __call__(self, job: ExportJob) -> None:
        if job.task_id not in self._watched or not job.is_terminal:
            return
        self._watched.discard(job.task_id)

        if job.status == JobStatus.SUCCESS:
            self._post(
                Toast(
                    title="Export Complete!",
                    description=f"Your {job.format.value.upper()} export is ready for download.",
                    variant=ToastVariant.SUCCESS,
                    duration_ms=SUCCESS_DURATION_MS,
                    task_id=job.task_id,
                )
            )
        else:
            reason = job.error or "Please check your filters and try again."
            self._post(
                Toast(
                    title="Export Failed",
                    description=f"Your export request failed: {reason}",
                    variant=ToastVariant.ERROR,
                    duration_ms=FAILURE_DURATION_MS,
                    task_id=job.task_id,
                )
            )

    def info(self, title: str, description: str, *, duration_ms: int = INFO_DURATION_MS) -> Toast:
        toast = Toast(title=title, description=description, variant=ToastVariant.INFO, duration_ms=duration_ms)
        self._post(toast)
        return toast

    def error(self, title: str, description: str, *, duration_ms: int = FAILURE_DURATION_MS) -> Toast:
        toast = Toast(title=title, description=description, variant=ToastVariant.ERROR, duration_ms=duration_ms)
        self._post(toast)
        return toast

    def _post(self, toast: Toast) -> None:
        self.toasts.append(toast)
        if toast.variant == ToastVariant.ERROR:
            logger.error(f"{toast.title}: {toast.description}")
        else:
            logger.info(f"{toast.title}: {toast.description}")


class ExportHistoryPanel:
    """Keeps the latest snapshot of every export job seen on the bridge.

    Terminal entries older than ``max_age_seconds`` are dropped each time a
    new terminal snapshot arrives, so a long-lived panel stays bounded.
    Age is measured from completion (or creation, for jobs without one).

    Args:
        clock: Epoch-millisecond clock used for entry ages.
        max_age_seconds: Age after which terminal entries are dropped, or
            None to keep entries until ``prune`` is called.
    """

    def __init__(self, clock=now_ms, max_age_seconds: float | None = HISTORY_MAX_AGE_SECONDS) -> None:
        self._entries: dict[str, ExportJob] = {}
        self._clock = clock
        self._max_age_seconds = max_age_seconds

    def __call__(self, job: ExportJob) -> None:
        self._entries[job.task_id] = job
        if job.is_terminal and self._max_age_seconds is not None:
            self.prune(self._max_age_seconds)

    def get(self, task_id: str) -> ExportJob | None:
        return self._entries.get(task_id)

    def entries(self) -> list[ExportJob]:
        """Latest snapshots, newest first."""
        return sorted(self._entries.values(), key=lambda j: j.created_at, reverse=True)

    def prune(self, max_age_seconds: float = HISTORY_MAX_AGE_SECONDS) -> int:
        """Drop terminal jobs that finished more than ``max_age_seconds`` ago.

        Returns:
            Number of entries removed.
        """
        cutoff = self._clock() - int(max_age_seconds * 1000)
        stale = [
            task_id
            for task_id, job in self._entries.items()
            if job.is_terminal and (job.completed_at or job.created_at) < cutoff
        ]
        for task_id in stale:
            del self._entries[task_id]
        if stale:
            logger.debug("Pruned {} old export history entries", len(stale))
        return len(stale)
