"""Reconstruct structured Markdown from PDF content streams."""

from __future__ import annotations

from .converter import (
    ConversionOptions,
    ConversionResult,
    ItemKind,
    MarkdownOptions,
    PdfToMarkdownConverter,
    Table,
    TextItem,
    TextLine,
    convert_pdf_to_markdown,
    extract_text_items,
    extract_text_lines,
    group_into_lines,
    items_to_markdown,
    text_to_markdown,
)
from .exceptions import (
    EncryptedPDFError,
    InvalidPDFError,
    MalformedPDFError,
    PageSelectionError,
    Pdf2MdxError,
)
from .tools import load_builtin_plugins
from .tools.common.interfaces import ConversionContext
from .tools.common.pipeline import ToolRegistry, register_tool, registry

load_builtin_plugins()

__version__ = "1.0.0"

__all__ = [
    "ConversionContext",
    "ConversionOptions",
    "ConversionResult",
    "EncryptedPDFError",
    "InvalidPDFError",
    "ItemKind",
    "MalformedPDFError",
    "MarkdownOptions",
    "PageSelectionError",
    "Pdf2MdxError",
    "PdfToMarkdownConverter",
    "Table",
    "TextItem",
    "TextLine",
    "ToolRegistry",
    "convert_pdf_to_markdown",
    "extract_text_items",
    "extract_text_lines",
    "group_into_lines",
    "items_to_markdown",
    "load_builtin_plugins",
    "register_tool",
    "registry",
    "text_to_markdown",
    "__version__",
]
