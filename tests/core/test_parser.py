from __future__ import annotations

from pathlib import Path

import pytest
from pypdf import PdfWriter
from pypdf.generic import ArrayObject, DecodedStreamObject, DictionaryObject, NameObject

from pdf2mdx.core.parser import PDFParser, search_object_offset
from pdf2mdx.core.validator import ValidationError, ensure_markdown_output, ensure_pdf_exists
from pdf2mdx.exceptions import EncryptedPDFError, InvalidPDFError, MalformedPDFError, PageSelectionError


def _write_sample_pdf(path: Path, *, pages: int = 1, encrypt: str | None = None) -> None:
    writer = PdfWriter()
    for _ in range(pages):
        page = writer.add_blank_page(width=200, height=400)
        stream = DecodedStreamObject()
        stream.set_data(b"q\nQ\n")
        page[NameObject("/Contents")] = writer._add_object(stream)
        page[NameObject("/Resources")] = DictionaryObject()
    writer.add_metadata({"/Title": "Test Document"})
    if encrypt is not None:
        writer.encrypt(user_password=encrypt, owner_password="owner", algorithm="RC4-128")
    with path.open("wb") as handle:
        writer.write(handle)


def test_pdf_parser_reads_pages(tmp_path: Path) -> None:
    pdf_path = tmp_path / "sample.pdf"
    _write_sample_pdf(pdf_path, pages=3)

    parser = PDFParser(pdf_path)
    assert parser.path == pdf_path.resolve()
    assert parser.page_count() == 3
    assert parser.raw_bytes.startswith(b"%PDF-")
    assert parser.reader is parser.load()

    pages = list(parser.iter_pages(indices=[2, 0, 2]))
    assert [number for number, _ in pages] == [3, 1]
    page = pages[0][1]
    assert parser.page_width(page) == 200
    contents = parser.content_stream(page)
    assert contents is not None
    assert contents.get_data().strip() == b"q\nQ"


def test_resolve_indices(tmp_path: Path) -> None:
    pdf_path = tmp_path / "sample.pdf"
    _write_sample_pdf(pdf_path, pages=2)
    parser = PDFParser(pdf_path, preload=True)

    assert parser.resolve_indices(None) == [0, 1]
    assert parser.resolve_indices([1, 1, 0]) == [1, 0]
    with pytest.raises(PageSelectionError):
        parser.resolve_indices([2])
    with pytest.raises(PageSelectionError):
        parser.resolve_indices([-1])


def test_content_stream_handles_missing_and_empty_contents(tmp_path: Path) -> None:
    pdf_path = tmp_path / "blank.pdf"
    writer = PdfWriter()
    writer.add_blank_page(width=100, height=100)
    page = writer.add_blank_page(width=100, height=100)
    page[NameObject("/Contents")] = ArrayObject()
    with pdf_path.open("wb") as handle:
        writer.write(handle)

    parser = PDFParser(pdf_path)
    assert [parser.content_stream(page) for _, page in parser.iter_pages()] == [None, None]


def test_invalid_sources(tmp_path: Path) -> None:
    with pytest.raises(InvalidPDFError):
        PDFParser(b"plain text").load()
    with pytest.raises(InvalidPDFError):
        PDFParser(tmp_path / "missing.pdf").load()
    with pytest.raises(InvalidPDFError):
        PDFParser(12).load()  # type: ignore[arg-type]
    with pytest.raises(MalformedPDFError):
        PDFParser(b"%PDF-1.4\nthis is not a document\n%%EOF").load()


def test_encrypted_documents(tmp_path: Path) -> None:
    open_path = tmp_path / "open.pdf"
    locked_path = tmp_path / "locked.pdf"
    _write_sample_pdf(open_path, encrypt="")
    _write_sample_pdf(locked_path, encrypt="secret")

    assert PDFParser(open_path).page_count() == 1
    with pytest.raises(EncryptedPDFError):
        PDFParser(locked_path).load()


def test_search_object_offset() -> None:
    data = b"%PDF-1.4\n112 0 obj\n<<>>\nendobj\n12 0 obj\n<<>>\nendobj\n"
    assert search_object_offset(data, (12, 0)) == data.rindex(b"12 0 obj")
    assert search_object_offset(data, (112, 0)) == data.index(b"112 0 obj")
    assert search_object_offset(data, (7, 0)) is None


def test_validators(tmp_path: Path) -> None:
    pdf_path = tmp_path / "doc.pdf"
    _write_sample_pdf(pdf_path)
    text_path = tmp_path / "doc.txt"
    text_path.write_text("hello", encoding="utf-8")

    assert ensure_pdf_exists(pdf_path) == pdf_path.resolve()
    with pytest.raises(ValidationError):
        ensure_pdf_exists(tmp_path / "absent.pdf")
    with pytest.raises(ValidationError):
        ensure_pdf_exists(text_path)

    target = ensure_markdown_output(tmp_path / "out" / "deep" / "doc.md")
    assert target.parent.is_dir()
    assert target == (tmp_path / "out" / "deep" / "doc.md").resolve()

    with pytest.raises(ValidationError):
        ensure_markdown_output(tmp_path / "out")
    with pytest.raises(ValidationError):
        ensure_markdown_output(tmp_path / "copy.pdf")
    assert not (tmp_path / "copy.pdf").exists()
    assert ensure_markdown_output(tmp_path / "notes.MARKDOWN").suffix == ".MARKDOWN"
