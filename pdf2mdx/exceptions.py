"""Custom exceptions for the :mod:`pdf2mdx` package."""

from __future__ import annotations


class Pdf2MdxError(RuntimeError):
    """Base class for errors raised while converting a PDF to Markdown."""


class InvalidPDFError(Pdf2MdxError):
    """Raised when the source cannot be read as a PDF document."""


class MalformedPDFError(Pdf2MdxError):
    """Raised when the document structure cannot be parsed."""


class EncryptedPDFError(Pdf2MdxError):
    """Raised when the document is encrypted and cannot be opened."""


class PageSelectionError(Pdf2MdxError, ValueError):
    """Raised when a requested page index is outside the document."""
