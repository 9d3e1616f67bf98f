"""
Export Schemas.

Formats and the rendered document returned by note export.
"""

from enum import Enum

from pydantic import BaseModel


class ExportFormat(str, Enum):
    """Supported note export formats."""

    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"


EXPORT_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.TEXT: "txt",
    ExportFormat.MARKDOWN: "md",
    ExportFormat.JSON: "json",
}

EXPORT_MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.TEXT: "text/plain; charset=utf-8",
    ExportFormat.MARKDOWN: "text/markdown; charset=utf-8",
    ExportFormat.JSON: "application/json",
}


class ExportDocument(BaseModel):
    """A rendered export, ready to be written to disk or sent as an attachment."""

    filename: str
    media_type: str
    body: str
