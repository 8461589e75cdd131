"""Shared PDF access helpers for pdf2mdx.

This module provides a thin abstraction around :class:`pypdf.PdfReader`
that the converter pipeline relies on.  The parser keeps the raw document
bytes next to the reader because the ToUnicode recovery path needs to scan
them directly when the object model cannot expose a stream.
"""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
import re
from typing import IO, Iterable, Iterator, Union

from pypdf import PageObject, PasswordType, PdfReader
from pypdf.errors import DependencyError, PdfReadError
from pypdf.generic import ArrayObject, IndirectObject, NameObject

from ..exceptions import EncryptedPDFError, InvalidPDFError, MalformedPDFError, PageSelectionError
from .utils import get_logger, resolve_path

__all__ = ["PDFParser", "PdfSource", "search_object_offset"]

LOGGER = get_logger("pdf2mdx.core.parser")

PdfSource = Union[str, Path, bytes, bytearray, IO[bytes]]

_WHITESPACE = b"\x00\t\n\r\f "
_HEADER_WINDOW = 1024


def search_object_offset(data: bytes, obj_ref: tuple[int, int]) -> int | None:
    """Best-effort search to locate an object declaration in the raw file."""

    idnum, generation = obj_ref
    pattern = f"{idnum} {generation} obj".encode("ascii")
    # Anchor on a line start or whitespace so ``12 0 obj`` does not match ``112 0 obj``.
    match = re.search(rb"(?m)(?:^|\s)" + re.escape(pattern), data)
    if not match:
        return None
    offset = match.start(0)
    if match.group(0).startswith(pattern):
        return offset
    while offset < len(data) and data[offset] in _WHITESPACE:
        offset += 1
    return offset


class PDFParser:
    """PDF access facade tailored for the Markdown converter."""

    def __init__(self, source: PdfSource, *, preload: bool = False) -> None:
        self.source = source
        self.path: Path | None = None
        if isinstance(source, (str, Path)):
            self.path = resolve_path(source)
        self._reader: PdfReader | None = None
        self._raw_bytes: bytes | None = None
        if preload:
            self.load()

    # -- Cached accessors ----------------------------------------------------

    @property
    def reader(self) -> PdfReader:
        """Return a cached :class:`PdfReader` instance for ``source``."""

        return self.load()

    @property
    def raw_bytes(self) -> bytes:
        return self._load_bytes()

    def load(self) -> PdfReader:
        if self._reader is not None:
            return self._reader
        data = self._load_bytes()
        self._check_header(data)
        try:
            reader = PdfReader(BytesIO(data))
            if reader.is_encrypted:
                self._decrypt(reader)
            # Touch the page tree so structural failures surface here.
            len(reader.pages)
        except (EncryptedPDFError, InvalidPDFError):
            raise
        except (PdfReadError, DependencyError) as exc:
            raise MalformedPDFError(f"Unable to parse PDF structure: {exc}") from exc
        except (ValueError, KeyError, TypeError, AssertionError) as exc:
            raise MalformedPDFError(f"Corrupt PDF structure: {exc}") from exc
        self._reader = reader
        return reader

    def page_count(self) -> int:
        """Return the number of pages in the PDF."""

        return len(self.reader.pages)

    def resolve_indices(self, indices: Iterable[int] | None) -> list[int]:
        count = self.page_count()
        if indices is None:
            return list(range(count))
        resolved: list[int] = []
        for index in indices:
            if index < 0 or index >= count:
                raise PageSelectionError(f"Page index {index} is out of range for document with {count} pages")
            if index not in resolved:
                resolved.append(index)
        return resolved

    def iter_pages(self, *, indices: Iterable[int] | None = None) -> Iterator[tuple[int, PageObject]]:
        """Yield ``(page_number, page)`` pairs; page numbers are 1-based."""

        reader = self.reader
        for index in self.resolve_indices(indices):
            yield index + 1, reader.pages[index]

    def page_width(self, page: PageObject) -> float | None:
        try:
            box = page.mediabox
            width = float(box.width)
        except Exception:
            return None
        return width if width > 0 else None

    def content_stream(self, page: PageObject) -> object | None:
        """Return the raw ``/Contents`` entry of ``page`` (stream or array)."""

        contents = page.get(NameObject("/Contents"))
        if contents is None:
            return None
        if isinstance(contents, IndirectObject):
            try:
                contents = contents.get_object()
            except Exception:
                LOGGER.debug("Unable to resolve page contents", exc_info=True)
                return None
        if isinstance(contents, ArrayObject) and not contents:
            return None
        return contents

    # -- Internal helpers ----------------------------------------------------

    def _load_bytes(self) -> bytes:
        if self._raw_bytes is not None:
            return self._raw_bytes
        source = self.source
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif self.path is not None:
            try:
                data = self.path.read_bytes()
            except OSError as exc:
                raise InvalidPDFError(f"Unable to read PDF file {self.path}: {exc}") from exc
        elif hasattr(source, "read"):
            try:
                data = source.read()
            except OSError as exc:
                raise InvalidPDFError(f"Unable to read PDF stream: {exc}") from exc
            if not isinstance(data, (bytes, bytearray)):
                raise InvalidPDFError("PDF stream must be opened in binary mode")
            data = bytes(data)
        else:
            raise InvalidPDFError(f"Unsupported PDF source type: {type(source).__name__}")
        self._raw_bytes = data
        return data

    @staticmethod
    def _check_header(data: bytes) -> None:
        if not data:
            raise InvalidPDFError("PDF source is empty")
        if b"%PDF-" not in data[:_HEADER_WINDOW]:
            raise InvalidPDFError("Missing %PDF- header")

    @staticmethod
    def _decrypt(reader: PdfReader) -> None:
        try:
            result = reader.decrypt("")
        except (PdfReadError, DependencyError, NotImplementedError) as exc:
            raise EncryptedPDFError(f"Unable to decrypt PDF: {exc}") from exc
        if result == PasswordType.NOT_DECRYPTED:
            raise EncryptedPDFError("PDF is encrypted and requires a password")
