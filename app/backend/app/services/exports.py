"""Spreadsheet and PDF rendering for report exports."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

MAX_COLUMN_WIDTH = 60


@dataclass(slots=True)
class SheetSpec:
    title: str
    headers: list[str]
    rows: list[list[object]] = field(default_factory=list)


def _cell_value(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, (datetime, date, int, float, str)):
        return value
    return str(value)


def build_workbook(sheets: list[SheetSpec]) -> bytes:
    """Render sheets with a bold header row and sized columns."""

    workbook = Workbook()
    workbook.remove(workbook.active)

    for sheet_spec in sheets:
        sheet = workbook.create_sheet(title=sheet_spec.title[:31])
        sheet.append(sheet_spec.headers)
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        for row in sheet_spec.rows:
            sheet.append([_cell_value(value) for value in row])

        for index, header in enumerate(sheet_spec.headers, start=1):
            width = len(str(header))
            for row in sheet_spec.rows:
                if index - 1 < len(row) and row[index - 1] is not None:
                    width = max(width, len(str(row[index - 1])))
            sheet.column_dimensions[get_column_letter(index)].width = min(width + 2, MAX_COLUMN_WIDTH)
        sheet.freeze_panes = "A2"

    if not workbook.sheetnames:
        workbook.create_sheet(title="Sheet1")

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def filters_sheet(filters: dict[str, object], *, generated_at: datetime) -> SheetSpec:
    rows: list[list[object]] = [["Generated (UTC)", generated_at.strftime("%Y-%m-%d %H:%M")]]
    for key, value in filters.items():
        if value is None or value == "" or value == []:
            value = "(any)"
        elif isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        rows.append([key, value])
    return SheetSpec(title="Filters", headers=["Filter", "Value"], rows=rows)


def build_pdf_table(
    *,
    title: str,
    headers: list[str],
    rows: list[list[object]],
    subtitle: str | None = None,
) -> bytes:
    """Render a landscape PDF holding one wrapped table."""

    output = io.BytesIO()
    doc = SimpleDocTemplate(
        output,
        pagesize=landscape(letter),
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=title,
    )
    styles = getSampleStyleSheet()
    wrap_style = styles["BodyText"]
    wrap_style.fontSize = 8
    wrap_style.leading = 10

    elements: list[object] = [Paragraph(title, styles["Title"])]
    if subtitle:
        elements.append(Paragraph(subtitle, styles["Normal"]))
    elements.append(Spacer(1, 0.2 * inch))

    data: list[list[object]] = [list(headers)]
    for row in rows:
        data.append([Paragraph(_escape(_pdf_text(value)), wrap_style) for value in row])

    if len(data) == 1:
        data.append([Paragraph("No records match the selected filters.", wrap_style)] + [""] * (len(headers) - 1))

    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1f3b5b")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 8),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f2f5f8")]),
            ]
        )
    )
    elements.append(table)
    doc.build(elements)
    return output.getvalue()


def _pdf_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%d %b %Y")
    return str(value)


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
