"""CSV statement writer for transaction exports."""

import csv
from collections.abc import Mapping, Sequence
from pathlib import Path

from erp_exports.lib.exporter.statement import (
    COLUMNS,
    TEXT_COLUMNS,
    StatementRow,
    StatementSummary,
    sanitize_cell,
)


def write_csv(
    output_path: Path,
    rows: Sequence[StatementRow],
    summary: StatementSummary,
    *,
    filters: Mapping[str, str] | None = None,
) -> int:
    """Write a transaction statement to a CSV file.

    Layout: header row, one row per transaction, a blank line, a
    ``Summary`` section and, when filters were applied, a blank line and a
    ``Filters`` section.  Fields containing commas, quotes or newlines are
    quoted with embedded quotes doubled.

    Args:
        output_path: Path to write the CSV file.
        rows: Statement rows, in output order.
        summary: Aggregates computed over ``rows``.
        filters: Applied filters to echo, if any.

    Returns:
        Number of transaction rows written.
    """
    count = 0

    with output_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([label for label, _ in COLUMNS])

        for row in rows:
            cells = []
            for _, attribute in COLUMNS:
                value = row.cell(attribute)
                cells.append(sanitize_cell(value) if attribute in TEXT_COLUMNS else value)
            writer.writerow(cells)
            count += 1

        writer.writerow([])
        writer.writerow(["Summary"])
        writer.writerows(summary.as_pairs())

        if filters:
            writer.writerow([])
            writer.writerow(["Filters"])
            for key, value in filters.items():
                writer.writerow([key, sanitize_cell(str(value))])

    return count
