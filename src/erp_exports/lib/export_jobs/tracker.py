"""Registry and polling loops for in-flight background export jobs.

Each tracked task id owns exactly one registry entry and one repeating
poll schedule.  Every successful poll publishes a job snapshot through the
NotificationBridge; a terminal status publishes once more for the last
time, removes the entry and ends the schedule.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from erp_exports.core.background import InProcessScheduler, RepeatingTaskScheduler
from erp_exports.core.errors import ExportApiError, PollTransientError
from erp_exports.lib.export_jobs.notifications import NotificationBridge
from erp_exports.lib.export_jobs.resources import TRANSACTIONS, ExportResource
from erp_exports.lib.export_jobs.responses import derive_file_name, extract_message
from erp_exports.lib.export_jobs.types import (
    SYNC_TASK_PREFIX,
    ExportFormat,
    ExportJob,
    JobStatus,
    Progress,
    now_ms,
    parse_job_status,
)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_BACKOFF = 30.0
TIMED_OUT_REASON = "timed out"
DEFAULT_FAILURE_REASON = "Export failed, please try again"


def _job_log(task_id: str):
    """Logger bound to a task; its records are job lifecycle events."""
    return logger.bind(task_id=task_id, job_event=True)


class StatusSource(Protocol):
    """Anything that can fetch a task's status payload (ExportApiClient)."""

    async def get_export_status(self, resource: ExportResource, task_id: str) -> dict[str, Any]: ...


@dataclass
class _Tracked:
    job: ExportJob
    resource: ExportResource
    consecutive_errors: int = 0


@dataclass(frozen=True)
class _StatusUpdate:
    status: JobStatus
    progress: Progress | None = None
    file_path: str | None = None
    error: str | None = None


class JobTracker:
    """Tracks background export jobs by polling their status endpoint.

    Args:
        source: Status source, normally an ExportApiClient.
        bridge: Bridge that receives every job snapshot.
        poll_interval: Seconds between polls.
        max_backoff: Upper bound for the interval after consecutive poll failures.
        max_tracking_seconds: Force-fail jobs tracked longer than this; None
            tracks until a terminal status or ``untrack``.
        scheduler: Repeating task scheduler (defaults to an asyncio one).
        clock: Epoch-millisecond clock.
    """

    def __init__(
        self,
        source: StatusSource,
        bridge: NotificationBridge,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        max_tracking_seconds: float | None = None,
        scheduler: RepeatingTaskScheduler | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._source = source
        self._bridge = bridge
        self._poll_interval = poll_interval
        self._max_backoff = max(max_backoff, poll_interval)
        self._max_tracking_ms = None if max_tracking_seconds is None else int(max_tracking_seconds * 1000)
        self._scheduler = scheduler or InProcessScheduler()
        self._clock = clock
        self._jobs: dict[str, _Tracked] = {}
        self._last_sync_ms = 0

    def track(
        self,
        task_id: str,
        export_format: ExportFormat | str = ExportFormat.EXCEL,
        *,
        resource: ExportResource = TRANSACTIONS,
    ) -> ExportJob:
        """Start tracking a background task.  Idempotent per task id.

        Must be called with a running event loop.  The job is registered as
        PENDING without publishing; the first snapshot is published by the
        first poll, one interval later.

        Args:
            task_id: Task id returned by the export endpoint.
            export_format: Format of the export.
            resource: Resource whose status endpoint is polled.

        Returns:
            A snapshot of the (new or already tracked) job.
        """
        existing = self._jobs.get(task_id)
        if existing is not None:
            logger.debug("Export job {} is already tracked", task_id)
            return existing.job.snapshot()

        entry = _Tracked(
            job=ExportJob(task_id=task_id, format=ExportFormat(export_format), created_at=self._clock()),
            resource=resource,
        )
        self._jobs[task_id] = entry

        async def tick() -> bool:
            if self._jobs.get(task_id) is not entry:
                return False
            await self.poll_once(task_id)
            return self._jobs.get(task_id) is entry

        self._scheduler.schedule(task_id, tick, lambda: self._next_delay(entry))
        _job_log(task_id).info("Tracking {} export job {}", entry.job.format, task_id)
        return entry.job.snapshot()

    def untrack(self, task_id: str) -> None:
        """Stop polling and forget a job, whatever its status.  Unknown ids are ignored."""
        entry = self._jobs.pop(task_id, None)
        if entry is None:
            return
        self._scheduler.cancel(task_id)
        _job_log(task_id).info("Stopped tracking export job {}", task_id)

    def is_tracking(self, task_id: str) -> bool:
        return task_id in self._jobs

    def get_job(self, task_id: str) -> ExportJob | None:
        """Snapshot of a tracked job, or None if it is not tracked."""
        entry = self._jobs.get(task_id)
        return entry.job.snapshot() if entry else None

    def active_jobs(self) -> list[ExportJob]:
        """Snapshots of all tracked jobs, newest first."""
        jobs = [entry.job.snapshot() for entry in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def complete_sync(
        self,
        file_path: str,
        file_name: str,
        export_format: ExportFormat | str,
    ) -> ExportJob:
        """Publish a synthesized SUCCESS job for a synchronous export.

        The job is never registered or polled.

        Returns:
            The synthesized job, with a ``sync-<epoch ms>`` task id.
        """
        stamp = max(self._clock(), self._last_sync_ms + 1)
        self._last_sync_ms = stamp
        job = ExportJob(
            task_id=f"{SYNC_TASK_PREFIX}{stamp}",
            format=ExportFormat(export_format),
            status=JobStatus.SUCCESS,
            file_path=file_path,
            file_name=file_name,
            created_at=stamp,
            completed_at=stamp,
        )
        _job_log(job.task_id).info("Export {} completed synchronously: {}", job.task_id, file_name)
        self._bridge.publish(job)
        return job

    async def poll_once(self, task_id: str) -> ExportJob | None:
        """Run one poll cycle for a tracked job.

        Transient poll failures are logged and leave the job unchanged.

        Returns:
            The published snapshot, or None if nothing was published.
        """
        entry = self._jobs.get(task_id)
        if entry is None:
            return None

        if self._max_tracking_ms is not None and self._clock() - entry.job.created_at >= self._max_tracking_ms:
            _job_log(task_id).warning("Export job {} exceeded the tracking limit; marking failed", task_id)
            return self._finish(entry, _StatusUpdate(JobStatus.FAILURE, error=TIMED_OUT_REASON))

        try:
            update = await self._fetch(entry)
        except PollTransientError as exc:
            if self._jobs.get(task_id) is entry:
                entry.consecutive_errors += 1
                logger.bind(task_id=task_id).warning(
                    f"Export status poll failed (attempt {entry.consecutive_errors}): {exc.message}"
                )
            return None

        if self._jobs.get(task_id) is not entry:
            logger.debug("Discarding status for untracked export job {}", task_id)
            return None

        entry.consecutive_errors = 0
        return self._apply(entry, update)

    async def shutdown(self) -> None:
        """Stop every poll loop and clear the registry."""
        self._jobs.clear()
        await self._scheduler.cancel_all()

    def _next_delay(self, entry: _Tracked) -> float:
        if entry.consecutive_errors == 0:
            return self._poll_interval
        return min(self._poll_interval * 2**entry.consecutive_errors, self._max_backoff)

    async def _fetch(self, entry: _Tracked) -> _StatusUpdate:
        task_id = entry.job.task_id
        try:
            payload = await self._source.get_export_status(entry.resource, task_id)
        except ExportApiError as exc:
            raise PollTransientError(task_id, exc.message) from exc

        try:
            status = parse_job_status(payload.get("status"))
        except ValueError as exc:
            raise PollTransientError(task_id, str(exc)) from exc

        if status == JobStatus.SUCCESS:
            result = payload.get("result")
            file_path = result.get("file_path") if isinstance(result, dict) else None
            if not isinstance(file_path, str) or not file_path.strip():
                raise PollTransientError(task_id, "SUCCESS reported without a file path")
            return _StatusUpdate(status, file_path=file_path.strip())

        if status == JobStatus.FAILURE:
            return _StatusUpdate(status, error=_failure_reason(payload))

        return _StatusUpdate(status, progress=_parse_progress(payload.get("info")))

    def _apply(self, entry: _Tracked, update: _StatusUpdate) -> ExportJob:
        job = entry.job
        if update.status.rank < job.status.rank:
            logger.debug("Ignoring {} -> {} regression for export job {}", job.status, update.status, job.task_id)
            update = _StatusUpdate(job.status, progress=update.progress)

        if update.status.is_terminal:
            return self._finish(entry, update)

        job.status = update.status
        if update.status == JobStatus.STARTED and update.progress is not None:
            job.progress = update.progress
        logger.debug("Export job {} is {}", job.task_id, job.status)
        self._bridge.publish(job)
        return job.snapshot()

    def _finish(self, entry: _Tracked, update: _StatusUpdate) -> ExportJob:
        job = entry.job
        job.status = update.status
        job.progress = None
        job.completed_at = self._clock()
        if update.status == JobStatus.SUCCESS:
            job.file_path = update.file_path
            job.file_name = derive_file_name(update.file_path, job.format, entry.resource.default_stem)
            _job_log(job.task_id).info("Export job {} completed: {}", job.task_id, job.file_name)
        else:
            job.error = update.error or DEFAULT_FAILURE_REASON
            _job_log(job.task_id).warning("Export job {} failed: {}", job.task_id, job.error)

        self._bridge.publish(job)
        if self._jobs.get(job.task_id) is entry:
            del self._jobs[job.task_id]
            self._scheduler.cancel(job.task_id)
        return job.snapshot()


def _parse_progress(info: object) -> Progress | None:
    if not isinstance(info, dict):
        return None
    current, total = info.get("current"), info.get("total")
    if isinstance(current, int) and isinstance(total, int) and not isinstance(current, bool):
        return Progress(current=current, total=total)
    return None


def _failure_reason(payload: dict[str, Any]) -> str:
    for key in ("result", "info"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        message = extract_message(value)
        if message:
            return message
    return extract_message(payload) or DEFAULT_FAILURE_REASON
