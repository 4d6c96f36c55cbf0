from __future__ import annotations

import pytest

from clinic_analytics.domain.errors import UnsupportedFormatError
from clinic_analytics.domain.export_format import ExportFormat, parse_export_format


@pytest.mark.parametrize(
    ("token", "expected", "extension"),
    [
        ("excel", ExportFormat.EXCEL, "xlsx"),
        ("PDF", ExportFormat.PDF, "pdf"),
        (" word ", ExportFormat.WORD, "docx"),
    ],
)
def test_parse_export_format_accepts_supported_tokens(
    token: str,
    expected: ExportFormat,
    extension: str,
) -> None:
    parsed = parse_export_format(token)

    assert parsed is expected
    assert parsed.extension == extension


@pytest.mark.parametrize("token", ["csv", "", "xlsx"])
def test_parse_export_format_rejects_unknown_tokens(token: str) -> None:
    with pytest.raises(UnsupportedFormatError) as exc_info:
        parse_export_format(token)

    assert exc_info.value.category == "unsupported_format"
    assert exc_info.value.token == token


def test_parse_export_format_rejects_disallowed_known_token() -> None:
    with pytest.raises(UnsupportedFormatError, match="unsupported export format: word"):
        parse_export_format(
            "word",
            allowed=frozenset({ExportFormat.EXCEL, ExportFormat.PDF}),
        )
