"""Classification of export endpoint responses.

The export endpoint answers with one of several JSON shapes.  All call
sites switch on the closed set of classes returned by
``classify_export_response`` instead of probing keys themselves.
"""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

from erp_exports.lib.export_jobs.types import ExportFormat


@dataclass(frozen=True)
class TaskHandle:
    """The backend queued the export as a background task."""

    task_id: str


@dataclass(frozen=True)
class FileReady:
    """The backend generated the file synchronously."""

    file_path: str


@dataclass(frozen=True)
class InlineRows:
    """The backend has no task queue and returned the rows inline."""

    transactions: list[dict[str, Any]]
    summary: dict[str, Any] = field(default_factory=dict)
    filters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Unrecognized:
    """Any other payload, including error bodies."""

    payload: object
    message: str | None = None


ExportResponse = TaskHandle | FileReady | InlineRows | Unrecognized

_MESSAGE_KEYS = ("message", "detail", "error")


def _present(value: object) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, str | int) and str(value).strip() != ""


def extract_message(payload: object) -> str | None:
    """Best-effort human-readable message from an error body.

    Args:
        payload: Decoded JSON body.

    Returns:
        The first non-blank ``message``, ``detail`` or ``error`` value, or None.
    """
    if not isinstance(payload, dict):
        return None
    for key in _MESSAGE_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def classify_export_response(payload: object) -> ExportResponse:
    """Classify a decoded export endpoint response.

    Precedence is ``task_id``, then ``file_path``, then ``transactions``.
    Blank values do not count as present.

    Args:
        payload: Decoded JSON body.

    Returns:
        One of TaskHandle, FileReady, InlineRows or Unrecognized.
    """
    if not isinstance(payload, dict):
        return Unrecognized(payload)

    task_id = payload.get("task_id")
    if _present(task_id):
        return TaskHandle(str(task_id).strip())

    file_path = payload.get("file_path")
    if _present(file_path):
        return FileReady(str(file_path).strip())

    transactions = payload.get("transactions")
    if isinstance(transactions, list):
        summary = payload.get("summary")
        filters = payload.get("filters")
        return InlineRows(
            transactions=[row for row in transactions if isinstance(row, dict)],
            summary=summary if isinstance(summary, dict) else {},
            filters=filters if isinstance(filters, dict) else {},
        )

    return Unrecognized(payload, message=extract_message(payload))


def derive_file_name(file_path: str | None, export_format: ExportFormat, default_stem: str) -> str:
    """Derive a download file name from a server file path or URL.

    Args:
        file_path: Relative path or absolute URL of the file.
        export_format: Export format, used for the fallback extension.
        default_stem: Stem of the fallback name (e.g. ``transactions_export``).

    Returns:
        The last path segment, or ``<default_stem>.<ext>`` if there is none.
    """
    if file_path:
        name = PurePosixPath(urlparse(file_path).path).name
        if name:
            return name
    return f"{default_stem}.{export_format.extension}"
