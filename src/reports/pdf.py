"""
PDF rendering for ledger reports.

Lays out a ReportHeader and a list of ReportTables on A4 pages with
reportlab's platypus engine. Tables split across pages with the header
row repeated.
"""

import base64
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, open_for_read
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from src.reports.formatter import ReportHeader, ReportTable


logger = structlog.get_logger("pondok_ledger.pdf")

PAGE_MARGIN = 14 * mm
LOGO_SIZE = 24 * mm
GRID_COLOR = colors.HexColor("#cbd5e1")
STRIPE_COLOR = colors.HexColor("#f1f5f9")


def _logo_bytes(logo_url: str) -> bytes:
    """Raw image bytes from a URL, a file path or a base64 data URI."""
    if logo_url.startswith("data:"):
        header, _, payload = logo_url.partition(",")
        if not header.endswith(";base64"):
            raise ValueError("Only base64 data URIs are supported")
        return base64.b64decode(payload, validate=True)
    return open_for_read(logo_url, "b").read()


def load_logo(logo_url: Optional[str]) -> Optional[Image]:
    """
    Fetch the logo as a square flowable.

    Returns None (and logs a warning) when there is no logo or it cannot
    be loaded; a report is always produced.
    """
    if not logo_url:
        return None
    try:
        data = _logo_bytes(logo_url)
        ImageReader(BytesIO(data)).getSize()
    except (OSError, ValueError) as e:
        logger.warning("report_logo_unavailable", logo_url=logo_url[:80], error=str(e))
        return None
    return Image(BytesIO(data), width=LOGO_SIZE, height=LOGO_SIZE)


def _header_flowables(header: ReportHeader, width: float) -> list:
    styles = getSampleStyleSheet()
    name_style = ParagraphStyle("InstitutionName", parent=styles["Normal"], fontSize=18, leading=22)
    title_style = ParagraphStyle("ReportTitle", parent=styles["Normal"], fontSize=12, leading=16)
    detail_style = ParagraphStyle(
        "ReportDetail", parent=styles["Normal"], fontSize=10, leading=13,
        textColor=colors.HexColor("#475569"),
    )

    text = [
        Paragraph(escape(header.institution_name), name_style),
        Paragraph(escape(header.title), title_style),
    ]
    text.extend(Paragraph(escape(line), detail_style) for line in header.detail_lines)

    logo = load_logo(header.logo_url)
    if logo is None:
        return text

    # Logo on the left, text shifted right
    block = Table(
        [[logo, text]],
        colWidths=[LOGO_SIZE + 4 * mm, width - LOGO_SIZE - 4 * mm],
    )
    block.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
    ]))
    return [block]


def _table_style(table: ReportTable) -> TableStyle:
    # Row 0 is the header; body row i is table row i + 1
    commands = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(table.header_color)),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
    if table.striped:
        commands.append(("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, STRIPE_COLOR]))
    else:
        commands.append(("GRID", (0, 0), (-1, -1), 0.5, GRID_COLOR))

    for column in table.right_aligned:
        commands.append(("ALIGN", (column, 1), (column, -1), "RIGHT"))
    for row in table.bold_rows:
        commands.append(("FONTNAME", (0, row + 1), (-1, row + 1), "Helvetica-Bold"))
    for column in table.bold_columns:
        commands.append(("FONTNAME", (column, 1), (column, -1), "Helvetica-Bold"))
    for row, column, color in table.cell_colors:
        commands.append(("TEXTCOLOR", (column, row + 1), (column, row + 1), colors.HexColor(color)))

    return TableStyle(commands)


def _table_flowable(table: ReportTable, width: float) -> Table:
    data = [list(table.columns)] + [list(row) for row in table.rows]
    # Text columns share what the right-aligned amount columns leave
    amount_width = 38 * mm
    amount_columns = set(table.right_aligned)
    text_columns = len(table.columns) - len(amount_columns)
    text_width = (width - amount_width * len(amount_columns)) / max(text_columns, 1)
    col_widths = [
        amount_width if idx in amount_columns else text_width
        for idx in range(len(table.columns))
    ]
    flowable = Table(data, colWidths=col_widths, repeatRows=1)
    flowable.setStyle(_table_style(table))
    return flowable


def render_report_pdf(header: ReportHeader, tables: list[ReportTable]) -> bytes:
    """
    Render a complete report.

    Returns:
        The PDF document as bytes
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=header.title,
        author=header.prepared_by,
    )

    story = _header_flowables(header, doc.width)
    story.append(Spacer(1, 8 * mm))
    for table in tables:
        story.append(_table_flowable(table, doc.width))
        story.append(Spacer(1, 6 * mm))

    doc.build(story)
    logger.info("report_rendered", title=header.title, tables=len(tables))
    return buffer.getvalue()
