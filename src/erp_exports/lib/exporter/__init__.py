"""Exporter library: public API for local statement generation.

Provides format-specific writers and a unified export function used when
the backend cannot generate an export file itself.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from erp_exports.core.errors import FileGenerationError
from erp_exports.lib.exporter.csv_writer import write_csv
from erp_exports.lib.exporter.excel_writer import write_excel
from erp_exports.lib.exporter.pdf_writer import write_pdf
from erp_exports.lib.exporter.statement import (
    COLUMNS,
    StatementRow,
    StatementSummary,
    build_rows,
    summarize,
)

# Format registry mapping format names to writer functions
_WRITERS: dict[str, Callable[..., int]] = {
    "csv": write_csv,
    "excel": write_excel,
    "pdf": write_pdf,
}

SUPPORTED_FORMATS = list(_WRITERS.keys())


@dataclass
class ExportResult:
    """Result of an export operation."""

    record_count: int
    output_path: Path
    file_size_bytes: int
    summary: StatementSummary


def export_statement(
    records: Iterable[Mapping[str, Any]],
    output_format: str,
    output_path: Path,
    *,
    filters: Mapping[str, str] | None = None,
) -> ExportResult:
    """Export transaction records as a statement in the specified format.

    Args:
        records: Iterable of transaction record dicts.
        output_format: Output format (csv, excel, pdf).
        output_path: Path to write the output file.
        filters: Applied filters to echo in the file.

    Returns:
        ExportResult with record count, file info and the summary.

    Raises:
        FileGenerationError: If the format is not supported, a record is
            malformed or the writer fails.
    """
    if output_format not in _WRITERS:
        msg = f"Unsupported format: {output_format}. Supported: {SUPPORTED_FORMATS}"
        raise FileGenerationError(msg)

    writer = _WRITERS[output_format]
    rows = build_rows(records)
    summary = summarize(rows)

    try:
        count = writer(output_path, rows, summary, filters=filters)
    except FileGenerationError:
        raise
    except Exception as exc:
        msg = f"Failed to generate {output_format} file: {exc}"
        raise FileGenerationError(msg) from exc

    file_size = output_path.stat().st_size

    return ExportResult(
        record_count=count,
        output_path=output_path,
        file_size_bytes=file_size,
        summary=summary,
    )


__all__ = [
    "COLUMNS",
    "ExportResult",
    "SUPPORTED_FORMATS",
    "StatementRow",
    "StatementSummary",
    "build_rows",
    "export_statement",
    "summarize",
    "write_csv",
    "write_excel",
    "write_pdf",
]
