"""Excel statement writer for transaction exports."""

from collections.abc import Mapping, Sequence
from pathlib import Path

import openpyxl
from openpyxl.styles import Font, PatternFill

from erp_exports.lib.exporter.statement import (
    COLUMNS,
    TEXT_COLUMNS,
    StatementRow,
    StatementSummary,
    sanitize_cell,
    to_money,
)

_HEADER_FILL = PatternFill(start_color="4F46E5", end_color="4F46E5", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_MONEY_FORMAT = "#,##0.00"


def write_excel(
    output_path: Path,
    rows: Sequence[StatementRow],
    summary: StatementSummary,
    *,
    filters: Mapping[str, str] | None = None,
) -> int:
    """Write a transaction statement to an Excel workbook.

    Sheets: ``Transactions`` (styled header, one row per transaction),
    ``Summary`` (aggregates) and, when filters were applied, ``Filters``.
    User-entered text is written as a literal string, never a formula.

    Args:
        output_path: Path to write the .xlsx file.
        rows: Statement rows, in output order.
        summary: Aggregates computed over ``rows``.
        filters: Applied filters, if any.

    Returns:
        Number of transaction rows written.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Transactions"

    for col, (label, _) in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=label)
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT

    for row_idx, row in enumerate(rows, 2):
        for col_idx, (_, attribute) in enumerate(COLUMNS, 1):
            if attribute == "amount":
                cell = ws.cell(row=row_idx, column=col_idx, value=to_money(row.amount))
                cell.number_format = _MONEY_FORMAT
            elif attribute in TEXT_COLUMNS:
                ws.cell(row=row_idx, column=col_idx, value=sanitize_cell(row.cell(attribute)))
            else:
                ws.cell(row=row_idx, column=col_idx, value=row.cell(attribute))

    for column in ws.columns:
        width = max(len(str(cell.value or "")) for cell in column)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    summary_ws = wb.create_sheet("Summary")
    summary_ws.append(["Metric", "Value"])
    for cell in summary_ws[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
    summary_ws.append(["Total Transactions", summary.total_transactions])
    for label, amount in (
        ("Total Credit", summary.total_credit),
        ("Total Debit", summary.total_debit),
        ("Net Amount", summary.net_amount),
    ):
        summary_ws.append([label, to_money(amount)])
        summary_ws.cell(row=summary_ws.max_row, column=2).number_format = _MONEY_FORMAT
    summary_ws.column_dimensions["A"].width = 22
    summary_ws.column_dimensions["B"].width = 18

    if filters:
        filters_ws = wb.create_sheet("Filters")
        filters_ws.append(["Filter", "Value"])
        for key, value in filters.items():
            filters_ws.append([key, sanitize_cell(str(value))])

    wb.save(output_path)
    return len(rows)
