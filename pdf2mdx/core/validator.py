"""Path checks for PDF inputs and Markdown outputs."""

from __future__ import annotations

from pathlib import Path

from ..exceptions import Pdf2MdxError
from .utils import resolve_path

MARKDOWN_SUFFIXES = (".md", ".markdown", ".mdx", ".txt")


class ValidationError(Pdf2MdxError):
    """Raised when a source PDF or a Markdown destination is unusable."""


def ensure_pdf_exists(path: str | Path) -> Path:
    resolved = resolve_path(path)
    if not resolved.is_file():
        raise ValidationError(f"PDF file not found: {resolved}")
    if resolved.suffix.lower() != ".pdf":
        raise ValidationError(f"Expected a .pdf file, got: {resolved.name}")
    return resolved


def ensure_markdown_output(path: str | Path) -> Path:
    """Resolve a Markdown destination and create its parent directories.

    The path must name a file with a Markdown or plain-text suffix; an existing
    directory or a ``.pdf`` target is rejected before anything is written.
    """

    resolved = resolve_path(path)
    if resolved.is_dir():
        raise ValidationError(f"Output path is a directory: {resolved}")
    if resolved.suffix.lower() not in MARKDOWN_SUFFIXES:
        allowed = ", ".join(MARKDOWN_SUFFIXES)
        raise ValidationError(f"Markdown output must end in one of {allowed}: {resolved.name}")
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved
