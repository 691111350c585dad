"""PDF statement writer for transaction exports.

Renders a landscape A4 statement with reportlab: a colored header band on
every page, transactions oldest first with a running balance column, a
summary block and a page-number footer.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from functools import partial
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from erp_exports.lib.exporter.statement import (
    COLUMNS,
    StatementRow,
    StatementSummary,
    format_money,
    oldest_first,
    running_balances,
)

TITLE = "Transaction Statement"
HEADER_COLOR = colors.HexColor("#4F46E5")
ZEBRA_COLOR = colors.HexColor("#F3F4F6")
BAND_HEIGHT = 22 * mm
MARGIN = 15 * mm

# Widths in mm for COLUMNS followed by Balance; sums to the landscape A4 frame width
_COLUMN_WIDTHS_MM = [22, 28, 16, 24, 30, 30, 55, 20, 22, 20]


def _draw_page(canvas: Canvas, doc: SimpleDocTemplate, *, generated_at: str) -> None:
    """Draw the header band and page-number footer."""
    width, height = doc.pagesize
    canvas.saveState()
    canvas.setFillColor(HEADER_COLOR)
    canvas.rect(0, height - BAND_HEIGHT, width, BAND_HEIGHT, stroke=0, fill=1)
    canvas.setFillColor(colors.white)
    canvas.setFont("Helvetica-Bold", 16)
    canvas.drawString(MARGIN, height - 14 * mm, TITLE)
    canvas.setFont("Helvetica", 9)
    canvas.drawRightString(width - MARGIN, height - 14 * mm, f"Generated {generated_at}")
    canvas.setFillColor(colors.grey)
    canvas.drawCentredString(width / 2, 8 * mm, f"Page {doc.page}")
    canvas.restoreState()


def _transactions_table(rows: Sequence[StatementRow], cell_style: ParagraphStyle) -> Table:
    header = [label for label, _ in COLUMNS] + ["Balance"]
    data: list[list[object]] = [header]
    for row, balance in running_balances(oldest_first(rows)):
        cells: list[object] = []
        for _, attribute in COLUMNS:
            value = row.cell(attribute)
            cells.append(Paragraph(escape(value), cell_style) if attribute == "purpose" else value)
        cells.append(format_money(balance))
        data.append(cells)

    table = Table(data, colWidths=[w * mm for w in _COLUMN_WIDTHS_MM], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ALIGN", (3, 1), (3, -1), "RIGHT"),
                ("ALIGN", (-1, 1), (-1, -1), "RIGHT"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ZEBRA_COLOR]),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ]
        )
    )
    return table


def _summary_table(summary: StatementSummary) -> Table:
    table = Table([["Summary", ""], *summary.as_pairs()], colWidths=[50 * mm, 40 * mm])
    table.setStyle(
        TableStyle(
            [
                ("SPAN", (0, 0), (-1, 0)),
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (1, 1), (1, -1), "RIGHT"),
                ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
            ]
        )
    )
    return table


def write_pdf(
    output_path: Path,
    rows: Sequence[StatementRow],
    summary: StatementSummary,
    *,
    filters: Mapping[str, str] | None = None,
) -> int:
    """Write a transaction statement to a PDF file.

    Args:
        output_path: Path to write the PDF file.
        rows: Statement rows (sorted oldest first for rendering).
        summary: Aggregates computed over ``rows``.
        filters: Applied filters to print under the title, if any.

    Returns:
        Number of transaction rows written.
    """
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("StatementCell", parent=styles["Normal"], fontSize=8, leading=10)
    meta_style = ParagraphStyle("StatementMeta", parent=styles["Normal"], fontSize=9, textColor=colors.grey)

    story: list[object] = []
    if filters:
        text = ", ".join(f"{escape(k)}: {escape(str(v))}" for k, v in filters.items())
        story.append(Paragraph(f"Filters: {text}", meta_style))
        story.append(Spacer(1, 4 * mm))

    story.append(_transactions_table(rows, cell_style))
    story.append(Spacer(1, 8 * mm))
    story.append(_summary_table(summary))

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=landscape(A4),
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=BAND_HEIGHT + 8 * mm,
        bottomMargin=18 * mm,
        title=TITLE,
    )
    on_page = partial(_draw_page, generated_at=datetime.now().strftime("%Y-%m-%d %H:%M"))
    doc.build(story, onFirstPage=on_page, onLaterPages=on_page)

    return len(rows)
