"""PDF content-stream → Markdown reconstruction."""

from __future__ import annotations

from .lines import group_into_lines
from .markdown import build_document, items_to_markdown, lines_to_markdown
from .pipeline import (
    PdfToMarkdownConverter,
    convert_pdf_to_markdown,
    extract_text_items,
    extract_text_lines,
)
from .plaintext import is_code_like, text_to_markdown
from .tables import table_to_markdown
from .types import (
    ConversionOptions,
    ConversionResult,
    ItemKind,
    MarkdownOptions,
    Table,
    TextItem,
    TextLine,
)

__all__ = [
    "ConversionOptions",
    "ConversionResult",
    "ItemKind",
    "MarkdownOptions",
    "PdfToMarkdownConverter",
    "Table",
    "TextItem",
    "TextLine",
    "build_document",
    "convert_pdf_to_markdown",
    "extract_text_items",
    "extract_text_lines",
    "group_into_lines",
    "items_to_markdown",
    "is_code_like",
    "lines_to_markdown",
    "table_to_markdown",
    "text_to_markdown",
]
