"""Export request submission with a direct-fetch fallback.

Submits a normalized export request to the backend and classifies the
answer.  When the backend cannot produce a task or a file, the rows are
fetched from the resource's list endpoint and the file is generated
locally, so the user always gets a file or a clear error.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from erp_exports.core.errors import ExportApiError, ExportSubmissionError
from erp_exports.lib.export_jobs.batching import DEFAULT_CONCURRENCY, gather_bounded
from erp_exports.lib.export_jobs.client import ExportApiClient
from erp_exports.lib.export_jobs.resources import TRANSACTIONS, ExportResource
from erp_exports.lib.export_jobs.responses import (
    FileReady,
    InlineRows,
    TaskHandle,
    classify_export_response,
    derive_file_name,
)
from erp_exports.lib.export_jobs.types import (
    AsyncSubmission,
    ExportParams,
    SubmissionResult,
    SyncSubmission,
)
from erp_exports.lib.exporter import export_statement

DEFAULT_PAGE_SIZE = 500
MAX_LIST_PAGES = 1000
GENERIC_FAILURE = "Export failed, please try again"


def _page_results(payload: object) -> list[dict[str, Any]]:
    """Rows of one list-endpoint page (a plain list or ``{results: [...]}``)."""
    if isinstance(payload, dict):
        payload = payload.get("results")
    if not isinstance(payload, list):
        msg = "Unexpected list response: no results"
        raise ExportApiError(msg)
    return [row for row in payload if isinstance(row, dict)]


def _too_many_pages(resource: ExportResource) -> str:
    return f"{resource.name} list exceeds {MAX_LIST_PAGES} pages; narrow the filters"


class ExportRequestBuilder:
    """Builds, submits and classifies export requests.

    Args:
        client: Backend client.
        download_dir: Directory where locally generated files are written.
        page_size: Rows requested per list page on the fallback path.
        concurrency: Maximum concurrent list page requests.
    """

    def __init__(
        self,
        client: ExportApiClient,
        *,
        download_dir: Path,
        page_size: int = DEFAULT_PAGE_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._client = client
        self._download_dir = download_dir
        self._page_size = page_size
        self._concurrency = concurrency

    @property
    def download_dir(self) -> Path:
        return self._download_dir

    async def submit(self, params: ExportParams, resource: ExportResource = TRANSACTIONS) -> SubmissionResult:
        """Submit an export request.

        Args:
            params: Export selection; absent filter values are omitted.
            resource: Resource to export.

        Returns:
            AsyncSubmission when the backend queued a task, otherwise a
            SyncSubmission pointing at the server file or the locally
            generated one.

        Raises:
            ExportSubmissionError: If the primary request and the fallback
                both fail.
            FileGenerationError: If local file generation fails.
            InvalidExportRequest: If a filter is not accepted by ``resource``.
        """
        body = params.to_request_body(resource)
        primary_message: str | None = None
        inline: InlineRows | None = None

        try:
            payload = await self._client.start_export(resource, body)
        except ExportApiError as exc:
            logger.warning(f"Export request for {resource.name} failed, falling back: {exc.message}")
            primary_message = exc.message
        else:
            response = classify_export_response(payload)
            if isinstance(response, TaskHandle):
                logger.info("Export queued as task {}", response.task_id)
                return AsyncSubmission(task_id=response.task_id)
            if isinstance(response, FileReady):
                file_name = derive_file_name(response.file_path, params.format, resource.default_stem)
                logger.info("Export generated synchronously: {}", file_name)
                return SyncSubmission(file_path=response.file_path, file_name=file_name)
            if isinstance(response, InlineRows):
                inline = response
            else:
                primary_message = response.message
            logger.warning("Export endpoint for {} returned no task or file, falling back", resource.name)

        if not resource.supports_fallback:
            raise ExportSubmissionError(primary_message or GENERIC_FAILURE)

        filters = params.normalized_filters(resource)
        try:
            records = await self._fetch_all(resource, filters)
        except ExportApiError as exc:
            if inline is None:
                msg = primary_message or exc.message
                raise ExportSubmissionError(msg) from exc
            logger.warning(f"Direct fetch failed, using {len(inline.transactions)} inline rows: {exc.message}")
            records = inline.transactions

        return self._generate(records, params, resource, filters)

    async def _fetch_all(self, resource: ExportResource, filters: dict[str, str]) -> list[dict[str, Any]]:
        """Fetch every row of the filtered set, following pagination.

        The first page gives the total count; the remaining pages are
        fetched with bounded concurrency.
        """
        first = await self._client.list_page(resource, filters, page=1, page_size=self._page_size)
        records = _page_results(first)
        if not isinstance(first, dict):
            return records

        count = first.get("count")
        if not isinstance(count, int) or isinstance(count, bool):
            if first.get("next"):
                return await self._follow_pages(resource, filters, records)
            return records
        if not records or count <= len(records):
            return records

        # The server may cap page_size; page numbering follows its page length
        per_page = len(records)
        total_pages = -(-count // per_page)
        if total_pages > MAX_LIST_PAGES:
            raise ExportApiError(_too_many_pages(resource))
        logger.debug("Fetching {} more pages of {} ({} rows)", total_pages - 1, resource.name, count)

        calls = [self._page_call(resource, filters, page) for page in range(2, total_pages + 1)]
        for payload in await gather_bounded(calls, self._concurrency):
            records.extend(_page_results(payload))
        return records

    async def _follow_pages(
        self,
        resource: ExportResource,
        filters: dict[str, str],
        records: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Follow ``next`` links until the last page or an empty page."""
        page = 1
        has_next = True
        while has_next:
            page += 1
            if page > MAX_LIST_PAGES:
                raise ExportApiError(_too_many_pages(resource))
            payload = await self._client.list_page(resource, filters, page=page, page_size=self._page_size)
            rows = _page_results(payload)
            if not rows:
                break
            records.extend(rows)
            has_next = isinstance(payload, dict) and bool(payload.get("next"))
        return records

    def _page_call(
        self,
        resource: ExportResource,
        filters: dict[str, str],
        page: int,
    ) -> Callable[[], Awaitable[Any]]:
        def call() -> Awaitable[Any]:
            return self._client.list_page(resource, filters, page=page, page_size=self._page_size)

        return call

    def _generate(
        self,
        records: list[dict[str, Any]],
        params: ExportParams,
        resource: ExportResource,
        filters: dict[str, str],
    ) -> SyncSubmission:
        """Encode rows into the download directory via a ``.part`` temp file."""
        self._download_dir.mkdir(parents=True, exist_ok=True)
        dest = self._unique_path(resource.default_stem, params.format.extension)
        part_path = dest.with_suffix(dest.suffix + ".part")

        try:
            result = export_statement(records, params.format.value, part_path, filters=filters)
            part_path.replace(dest)
        finally:
            part_path.unlink(missing_ok=True)

        logger.info(
            "Generated {} locally: {} rows, net {}",
            dest.name,
            result.record_count,
            result.summary.net_amount,
        )
        return SyncSubmission(file_path=str(dest), file_name=dest.name, generated_locally=True)

    def _unique_path(self, stem: str, extension: str) -> Path:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        dest = self._download_dir / f"{stem}_{stamp}.{extension}"
        counter = 1
        while dest.exists():
            dest = self._download_dir / f"{stem}_{stamp}_{counter}.{extension}"
            counter += 1
        return dest
