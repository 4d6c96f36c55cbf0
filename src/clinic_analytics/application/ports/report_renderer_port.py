"""Port for rendering flat records into downloadable report documents."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from clinic_analytics.domain.export_format import ExportFormat


@dataclass(frozen=True)
class RenderedReport:
    """Rendered report bytes plus the filename and media type suggested to callers."""

    export_format: ExportFormat
    content: bytes
    filename: str

    @property
    def media_type(self) -> str:
        return self.export_format.media_type


class ReportRendererPort(Protocol):
    """Render uniform records into one export format."""

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        export_format: ExportFormat,
        *,
        title: str,
        basename: str,
    ) -> RenderedReport:
        """Return the rendered document for `rows`."""
