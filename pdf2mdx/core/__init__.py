"""Shared infrastructure for pdf2mdx: PDF access, validation and helpers."""

from __future__ import annotations

from .parser import PDFParser
from .utils import get_logger, resolve_path, time_block
from .validator import ValidationError, ensure_markdown_output, ensure_pdf_exists

__all__ = [
    "PDFParser",
    "ValidationError",
    "ensure_markdown_output",
    "ensure_pdf_exists",
    "get_logger",
    "resolve_path",
    "time_block",
]
