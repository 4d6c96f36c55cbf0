"""Supported report export formats."""

from __future__ import annotations

from enum import StrEnum

from clinic_analytics.domain.errors import UnsupportedFormatError


class ExportFormat(StrEnum):
    """Export format tokens accepted by report endpoints."""

    EXCEL = "excel"
    PDF = "pdf"
    WORD = "word"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]


_EXTENSIONS = {
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.PDF: "pdf",
    ExportFormat.WORD: "docx",
}

_MEDIA_TYPES = {
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.PDF: "application/pdf",
    ExportFormat.WORD: (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
}


def parse_export_format(
    token: str,
    *,
    allowed: frozenset[ExportFormat] = frozenset(ExportFormat),
) -> ExportFormat:
    """Parse one format token; unknown or disallowed tokens are rejected, never defaulted."""

    try:
        export_format = ExportFormat(token.strip().lower())
    except ValueError as error:
        raise UnsupportedFormatError(token=token) from error
    if export_format not in allowed:
        raise UnsupportedFormatError(token=token)
    return export_format
