from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping, Sequence
import sys

import pytest
from pypdf import PdfWriter
from pypdf.annotations import Link
from pypdf.generic import DictionaryObject, NameObject, NumberObject, StreamObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


FONTS = {
    "/F1": "Helvetica",
    "/F2": "Helvetica-Bold",
    "/F3": "Courier",
}


def _font(base_font: str) -> DictionaryObject:
    return DictionaryObject(
        {
            NameObject("/Type"): NameObject("/Font"),
            NameObject("/Subtype"): NameObject("/Type1"),
            NameObject("/BaseFont"): NameObject(f"/{base_font}"),
        }
    )


def _stream(data: bytes, entries: Mapping[str, object] | None = None) -> StreamObject:
    stream = StreamObject()
    stream._data = data
    for key, value in (entries or {}).items():
        stream[NameObject(key)] = value
    stream[NameObject("/Length")] = NumberObject(len(data))
    return stream


def write_pdf(
    path: Path,
    pages: Sequence[str | bytes],
    *,
    links: Mapping[int, Sequence[tuple[tuple[float, float, float, float], str]]] | None = None,
    xobjects: Mapping[str, StreamObject] | None = None,
    width: float = 612,
    height: float = 792,
) -> Path:
    """Write one page per content stream, sharing Helvetica, Helvetica-Bold and Courier."""

    writer = PdfWriter()
    fonts = DictionaryObject({NameObject(name): writer._add_object(_font(base)) for name, base in FONTS.items()})
    for content in pages:
        page = writer.add_blank_page(width=width, height=height)
        data = content.encode("latin-1") if isinstance(content, str) else content
        resources = DictionaryObject({NameObject("/Font"): fonts})
        if xobjects:
            resources[NameObject("/XObject")] = DictionaryObject(
                {NameObject(name): writer._add_object(xobject) for name, xobject in xobjects.items()}
            )
        page[NameObject("/Resources")] = resources
        page[NameObject("/Contents")] = writer._add_object(_stream(data))
    for index, entries in (links or {}).items():
        for rect, url in entries:
            writer.add_annotation(index, Link(rect=rect, url=url))
    with path.open("wb") as handle:
        writer.write(handle)
    return path


def text_stream(*lines: tuple[float, float, str], font: str = "/F1", size: float = 12) -> str:
    """Content stream showing each ``(x, y, text)`` as its own text object."""

    parts = []
    for x, y, text in lines:
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        parts.append(f"BT {font} {size:g} Tf 1 0 0 1 {x:g} {y:g} Tm ({escaped}) Tj ET")
    return "\n".join(parts)


@pytest.fixture()
def pdf_factory(tmp_path: Path) -> Callable[..., Path]:
    def _create(filename: str, *pages: str | bytes, **kwargs: object) -> Path:
        return write_pdf(tmp_path / filename, pages, **kwargs)  # type: ignore[arg-type]

    return _create


@pytest.fixture()
def sample_pdf(pdf_factory: Callable[..., Path]) -> Path:
    page = "\n".join(
        [
            "BT /F2 24 Tf 1 0 0 1 72 700 Tm (Introduction) Tj ET",
            text_stream(
                (72, 660, "This is the first line of text"),
                (72, 646, "continuing on the next line."),
                (72, 620, "- First point"),
                (72, 606, "- Second point"),
            ),
        ]
    )
    return pdf_factory("sample.pdf", page)


@pytest.fixture()
def empty_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "empty.pdf"
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def text_content() -> Callable[..., str]:
    return text_stream


@pytest.fixture()
def stream_factory() -> Callable[..., StreamObject]:
    return _stream
