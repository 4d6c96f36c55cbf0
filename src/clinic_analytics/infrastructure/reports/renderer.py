"""Report rendering adapters for spreadsheet, PDF and word-processor exports."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from io import BytesIO
from xml.sax.saxutils import escape

from docx import Document
from openpyxl import Workbook
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from clinic_analytics.application.ports.report_renderer_port import (
    RenderedReport,
    ReportRendererPort,
)
from clinic_analytics.domain.export_format import ExportFormat

SHEET_TITLE = "Summary"
logger = logging.getLogger(__name__)

Records = Sequence[Mapping[str, object]]


def serialize_record(record: Mapping[str, object]) -> str:
    """Serialize one record as compact JSON preserving its key order."""

    return json.dumps(dict(record), default=str, ensure_ascii=False)


class ReportRenderer(ReportRendererPort):
    """Render flat records with openpyxl, reportlab or python-docx."""

    def render(
        self,
        rows: Records,
        export_format: ExportFormat,
        *,
        title: str,
        basename: str,
    ) -> RenderedReport:
        if export_format is ExportFormat.EXCEL:
            content = render_spreadsheet(rows)
        elif export_format is ExportFormat.PDF:
            content = render_pdf(rows, title=title)
        else:
            content = render_document(rows, title=title)

        logger.debug(
            "report_rendered format=%s rows=%s bytes=%s",
            export_format.value,
            len(rows),
            len(content),
        )
        return RenderedReport(
            export_format=export_format,
            content=content,
            filename=f"{basename}.{export_format.extension}",
        )


def render_spreadsheet(rows: Records) -> bytes:
    """Write one header row from the first record's keys, then one row per record."""

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    if rows:
        headers = list(rows[0].keys())
        sheet.append(headers)
        for record in rows:
            sheet.append([_cell_value(record.get(header)) for header in headers])

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def render_pdf(rows: Records, *, title: str) -> bytes:
    """Render a title then numbered JSON entries; long entries wrap and paginate."""

    styles = getSampleStyleSheet()
    buffer = BytesIO()
    document = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=title,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
    )
    story: list[object] = [Paragraph(escape(title), styles["Title"]), Spacer(1, 0.2 * inch)]
    for index, record in enumerate(rows, start=1):
        story.append(Paragraph(escape(f"{index}. {serialize_record(record)}"), styles["BodyText"]))
    document.build(story)
    return buffer.getvalue()


def render_document(rows: Records, *, title: str) -> bytes:
    """Render a heading then one numbered paragraph per record."""

    document = Document()
    document.add_heading(title, level=1)
    for index, record in enumerate(rows, start=1):
        document.add_paragraph(f"{index}. {serialize_record(record)}")

    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _cell_value(value: object) -> object:
    # Excel cells cannot carry timezone offsets.
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value
