"""Export service: orchestrates export submission, tracking and download.

Built once per application by ``create_export_service`` and passed to the
code that starts exports.  Owns the tracker registry; nothing here lives
in a module global.
"""

import asyncio
from pathlib import Path
from typing import Any

from loguru import logger

from erp_exports.core.config import Settings
from erp_exports.core.errors import ExportError, JobFailure
from erp_exports.lib.export_jobs import (
    TRANSACTIONS,
    AsyncSubmission,
    ExportApiClient,
    ExportJob,
    ExportParams,
    ExportRequestBuilder,
    ExportResource,
    JobStatus,
    JobTracker,
    NotificationBridge,
    derive_file_name,
)
from erp_exports.services.notification_service import ExportHistoryPanel, ToastNotifier

SUBMITTED_DESCRIPTION = (
    "Your export request is being processed in the background. "
    "You can continue working and we will notify you when it's ready for download."
)


class ExportService:
    """Composition of the export client, builder, tracker, bridge and consumers.

    Args:
        client: Backend client shared by the builder and tracker.
        builder: Export request builder.
        tracker: Background job tracker publishing to ``bridge``.
        bridge: Notification bridge the consumers subscribe to.
        toasts: Toast consumer (a new one if omitted).
        history: History panel consumer (a new one if omitted).
    """

    def __init__(
        self,
        client: ExportApiClient,
        builder: ExportRequestBuilder,
        tracker: JobTracker,
        bridge: NotificationBridge,
        *,
        toasts: ToastNotifier | None = None,
        history: ExportHistoryPanel | None = None,
    ) -> None:
        self.client = client
        self.builder = builder
        self.tracker = tracker
        self.bridge = bridge
        self.toasts = toasts if toasts is not None else ToastNotifier()
        self.history_panel = history if history is not None else ExportHistoryPanel()
        self._unsubscribers = [
            bridge.subscribe(self.toasts),
            bridge.subscribe(self.history_panel),
        ]

    async def start_export(self, params: ExportParams, resource: ExportResource = TRANSACTIONS) -> ExportJob:
        """Submit an export and start tracking it.

        Args:
            params: Export selection.
            resource: Resource to export.

        Returns:
            The tracked PENDING job for a background export, or the
            synthesized SUCCESS job for a synchronous one.

        Raises:
            ExportSubmissionError: If submission and fallback both failed.
            FileGenerationError: If local file generation failed.
            InvalidExportRequest: If a filter is not accepted by ``resource``.
        """
        try:
            result = await self.builder.submit(params, resource)
        except ExportError as exc:
            self.toasts.error("Export Failed", exc.message)
            raise

        if isinstance(result, AsyncSubmission):
            self.toasts.watch(result.task_id)
            job = self.tracker.track(result.task_id, params.format, resource=resource)
            self.toasts.info("Export Request Submitted", SUBMITTED_DESCRIPTION)
            return job

        job = self.tracker.complete_sync(result.file_path, result.file_name, params.format)
        self.toasts.info("Export Ready", "Your export is ready for download.")
        return job

    async def wait_for(self, task_id: str, timeout: float | None = None) -> ExportJob:
        """Wait for a tracked job to reach a terminal state.

        Args:
            task_id: Task id of a tracked (or just finished) job.
            timeout: Seconds to wait; None waits indefinitely.

        Returns:
            The terminal SUCCESS snapshot.

        Raises:
            JobFailure: If the job failed.
            ExportError: If the job is neither tracked nor recorded.
            TimeoutError: If ``timeout`` elapsed first.
        """
        future: asyncio.Future[ExportJob] = asyncio.get_running_loop().create_future()

        def on_job(job: ExportJob) -> None:
            if job.task_id == task_id and job.is_terminal and not future.done():
                future.set_result(job)

        unsubscribe = self.bridge.subscribe(on_job)
        try:
            if not self.tracker.is_tracking(task_id):
                recorded = self.history_panel.get(task_id)
                if recorded is None or not recorded.is_terminal:
                    msg = f"Export job {task_id} is not being tracked"
                    raise ExportError(msg)
                future.set_result(recorded)
            job = await asyncio.wait_for(future, timeout)
        finally:
            unsubscribe()

        if job.status == JobStatus.FAILURE:
            raise JobFailure(job)
        return job

    async def download(self, job: ExportJob, dest_dir: Path | None = None) -> Path:
        """Save a completed export's file.

        Files generated locally by the fallback are returned as is.

        Args:
            job: A SUCCESS job.
            dest_dir: Target directory (defaults to the builder's download dir).

        Returns:
            Local path of the file.

        Raises:
            ExportError: If the job has no file.
            ExportApiError: If the download fails.
        """
        if job.status != JobStatus.SUCCESS or not job.file_path:
            msg = f"Export job {job.task_id} has no file to download"
            raise ExportError(msg)

        if not job.file_path.startswith(("http://", "https://")):
            local = Path(job.file_path)
            if local.is_file():
                return local

        file_name = job.file_name or derive_file_name(job.file_path, job.format, TRANSACTIONS.default_stem)
        return await self.client.download_file(job.file_path, dest_dir or self.builder.download_dir, file_name)

    async def fetch_status(self, task_id: str, resource: ExportResource = TRANSACTIONS) -> dict[str, Any]:
        """Single status request for a task, without tracking it."""
        return await self.client.get_export_status(resource, task_id)

    async def history(
        self,
        *,
        status: str | None = None,
        export_format: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Backend-persisted export history."""
        return await self.client.list_export_history(
            status=status,
            export_format=export_format,
            limit=limit,
            offset=offset,
        )

    async def aclose(self) -> None:
        """Stop all polling and close the HTTP client."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        await self.tracker.shutdown()
        await self.client.aclose()
        logger.debug("Export service closed")


def create_export_service(settings: Settings) -> ExportService:
    """Build an ExportService from application settings."""
    client = ExportApiClient(
        settings.api_base_url,
        token=settings.api_token,
        organization_id=settings.organization_id,
        timeout=settings.request_timeout,
    )
    bridge = NotificationBridge()
    tracker = JobTracker(
        client,
        bridge,
        poll_interval=settings.export_poll_interval,
        max_backoff=settings.export_poll_max_backoff,
        max_tracking_seconds=settings.export_max_tracking_seconds,
    )
    builder = ExportRequestBuilder(
        client,
        download_dir=Path(settings.export_dir),
        page_size=settings.export_fallback_page_size,
        concurrency=settings.export_fallback_concurrency,
    )
    return ExportService(client, builder, tracker, bridge)
