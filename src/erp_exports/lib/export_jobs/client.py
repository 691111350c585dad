"""ERP backend HTTP client for export endpoints.

Uses httpx for async HTTP requests with bearer auth, tenant headers,
timeout and error handling.  Raw httpx exceptions never leave this module;
they are converted to ExportApiError.
"""

import re
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from erp_exports.core.errors import ExportApiError
from erp_exports.lib.export_jobs.resources import ExportResource
from erp_exports.lib.export_jobs.responses import extract_message

DEFAULT_TIMEOUT = 30.0
DOWNLOAD_CHUNK_SIZE = 64 * 1024

# Headers never sent to hosts other than the backend
_CREDENTIAL_HEADERS = ("Authorization", "X-Organization-ID")

_CONTENT_DISPOSITION_RE = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)


def filename_from_content_disposition(header: str | None) -> str | None:
    """Extract the file name from a Content-Disposition header value."""
    if not header:
        return None
    match = _CONTENT_DISPOSITION_RE.search(header)
    if not match:
        return None
    name = Path(match.group(1).strip()).name
    return name or None


class ExportApiClient:
    """Async client for the ERP export, status, list and history endpoints.

    Args:
        base_url: Backend root URL; relative file paths resolve against it.
        token: Optional bearer access token.
        organization_id: Optional active tenant, sent as ``X-Organization-ID``.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        organization_id: int | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if organization_id is not None:
            headers["X-Organization-ID"] = str(organization_id)
        self.base_url = base_url.rstrip("/")
        self._has_token = bool(token)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ExportApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def resolve_url(self, file_path: str) -> str:
        """Resolve a server file path to an absolute URL."""
        if file_path.startswith(("http://", "https://")):
            return file_path
        if not file_path.startswith("/"):
            file_path = "/" + file_path
        return f"{self.base_url}{file_path}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            msg = f"Timeout calling {method} {url}"
            logger.warning(msg)
            raise ExportApiError(msg) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = _error_detail(exc.response)
            msg = detail or f"HTTP {status} from {method} {url}"
            logger.warning(f"Export API HTTP {status} for {method} {url}")
            raise ExportApiError(msg, status_code=status) from exc
        except httpx.HTTPError as exc:
            msg = f"HTTP error calling {method} {url}: {exc}"
            logger.warning(msg)
            raise ExportApiError(msg) from exc
        return response

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Invalid JSON response from {method} {url}"
            logger.warning(msg)
            raise ExportApiError(msg, status_code=response.status_code) from exc

    async def start_export(self, resource: ExportResource, body: dict[str, str]) -> Any:
        """POST an export request and return the decoded body.

        Args:
            resource: Resource being exported.
            body: Normalized request body (format plus filters).

        Returns:
            Decoded JSON payload; classify it with ``classify_export_response``.

        Raises:
            ExportApiError: On transport, HTTP or decoding errors.
        """
        logger.debug("Submitting {} export: {}", resource.name, body)
        return await self._request_json("POST", resource.export_path, json=body)

    async def get_export_status(self, resource: ExportResource, task_id: str) -> dict[str, Any]:
        """Fetch the status of a background export task.

        Raises:
            ExportApiError: On transport, HTTP or decoding errors, or a non-object body.
        """
        url = resource.status_url(task_id)
        payload = await self._request_json("GET", url)
        if not isinstance(payload, dict):
            msg = f"Unexpected status payload from {url}"
            raise ExportApiError(msg)
        return payload

    async def list_page(
        self,
        resource: ExportResource,
        filters: dict[str, str],
        *,
        page: int,
        page_size: int,
        ordering: str = "-time",
    ) -> Any:
        """Fetch one page of the resource's list endpoint.

        Raises:
            ExportApiError: On transport, HTTP or decoding errors, or if the
                resource has no list endpoint.
        """
        if resource.list_path is None:
            msg = f"{resource.name} has no list endpoint"
            raise ExportApiError(msg)
        params = {"page_size": page_size, "ordering": ordering, "page": page, **filters}
        return await self._request_json("GET", resource.list_path, params=params)

    async def list_export_history(
        self,
        *,
        status: str | None = None,
        export_format: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch the backend-persisted export history.

        Returns:
            History entries, newest first as returned by the backend.
        """
        params: dict[str, str | int] = {}
        if status:
            params["status"] = status
        if export_format:
            params["format"] = export_format
        if limit:
            params["limit"] = limit
        if offset:
            params["offset"] = offset
        payload = await self._request_json("GET", "/export-history/", params=params)
        if isinstance(payload, dict):
            payload = payload.get("results", payload.get("data", []))
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    async def download_file(self, file_path: str, dest_dir: Path, file_name: str) -> Path:
        """Download a generated export file with authentication.

        The file is streamed to a ``.part`` temporary file and renamed on
        success, so no partial file remains on failure.  A filename in the
        ``Content-Disposition`` header takes precedence over ``file_name``.
        Credentials are only sent when the file is served from the same
        origin as ``base_url``.

        Args:
            file_path: Server path or absolute URL of the file.
            dest_dir: Directory to save the file in.
            file_name: Name to save the file under.

        Returns:
            Path of the downloaded file.

        Raises:
            ExportApiError: If the download fails.
        """
        if not self._has_token:
            msg = "Authentication required. Please log in again."
            raise ExportApiError(msg, status_code=401)

        url = self.resolve_url(file_path)
        request = self._client.build_request("GET", url)
        if not _same_origin(request.url, httpx.URL(self.base_url)):
            logger.debug("Downloading {} from another host without credentials", url)
            for header in _CREDENTIAL_HEADERS:
                request.headers.pop(header, None)
        dest_dir.mkdir(parents=True, exist_ok=True)

        try:
            response = await self._client.send(request, stream=True)
            try:
                if response.status_code == 401:
                    msg = "Session expired. Please log in again."
                    raise ExportApiError(msg, status_code=401)
                if response.status_code == 404:
                    msg = "File not found. The report may have expired."
                    raise ExportApiError(msg, status_code=404)
                if response.is_error:
                    msg = f"Failed to download: {response.reason_phrase}"
                    raise ExportApiError(msg, status_code=response.status_code)

                final_name = filename_from_content_disposition(response.headers.get("content-disposition"))
                dest = dest_dir / (final_name or file_name)
                part = dest.with_name(dest.name + ".part")
                try:
                    with part.open("wb") as f:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)
                    part.replace(dest)
                finally:
                    part.unlink(missing_ok=True)
            finally:
                await response.aclose()
        except httpx.HTTPError as exc:
            msg = f"Download of {url} failed: {exc}"
            logger.warning(msg)
            raise ExportApiError(msg) from exc

        logger.info("Downloaded export file to {}", dest)
        return dest


def _same_origin(url: httpx.URL, base: httpx.URL) -> bool:
    return (url.scheme, url.host, url.port) == (base.scheme, base.host, base.port)


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return extract_message(payload)
