from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest

from pdf2mdx import (
    ConversionOptions,
    InvalidPDFError,
    MarkdownOptions,
    PageSelectionError,
    PdfToMarkdownConverter,
    convert_pdf_to_markdown,
    extract_text_items,
    extract_text_lines,
)
from pdf2mdx.converter.pipeline import PIPELINE_STEPS, PipelineLogger

EXPECTED = (
    "# Introduction\n"
    "\n"
    "This is the first line of text continuing on the next line.\n"
    "\n"
    "- First point\n"
    "- Second point\n"
)


def test_convert_sample_document(sample_pdf: Path) -> None:
    assert convert_pdf_to_markdown(sample_pdf) == EXPECTED


def test_convert_accepts_bytes_and_streams(sample_pdf: Path) -> None:
    data = sample_pdf.read_bytes()
    assert convert_pdf_to_markdown(data) == EXPECTED
    assert convert_pdf_to_markdown(BytesIO(data)) == EXPECTED
    assert convert_pdf_to_markdown(str(sample_pdf)) == EXPECTED


def test_converter_writes_output_and_reports(sample_pdf: Path, tmp_path: Path) -> None:
    output = tmp_path / "nested" / "sample.md"
    result = PdfToMarkdownConverter().convert(sample_pdf, output)

    assert result.output_path == output.resolve()
    assert output.read_text(encoding="utf-8") == EXPECTED
    assert result.markdown == EXPECTED
    assert result.page_count == 1
    assert result.item_count == 5
    assert result.line_count == 5
    assert result.table_count == 0
    assert result.heading_count == 1
    assert len(result.log) == len(PIPELINE_STEPS)
    assert result.log[-1].endswith("Wrote sample.md.")
    assert 0.0 < result.processing_time < 60.0


def test_in_memory_conversion_has_no_output(sample_pdf: Path) -> None:
    result = PdfToMarkdownConverter(MarkdownOptions(detect_headers=False)).convert(sample_pdf)

    assert result.output_path is None
    assert result.heading_count == 0
    assert result.markdown.startswith("Introduction\n\n")
    assert result.log[-1].endswith("Returned in memory.")


def test_page_selection(pdf_factory: Callable[..., Path], text_content: Callable[..., str]) -> None:
    path = pdf_factory(
        "pages.pdf",
        text_content((72, 700, "First page text.")),
        text_content((72, 700, "Second page text.")),
    )

    assert convert_pdf_to_markdown(path) == "First page text.\n\nSecond page text.\n"
    assert convert_pdf_to_markdown(path, pages=[1]) == "Second page text.\n"
    options = ConversionOptions(page_numbers=[0])
    assert PdfToMarkdownConverter(options).convert(path).markdown == "First page text.\n"
    with pytest.raises(PageSelectionError):
        convert_pdf_to_markdown(path, pages=[5])


def test_invalid_sources_raise(tmp_path: Path) -> None:
    with pytest.raises(InvalidPDFError):
        convert_pdf_to_markdown(b"not a pdf")
    with pytest.raises(InvalidPDFError):
        convert_pdf_to_markdown(b"")
    with pytest.raises(InvalidPDFError):
        convert_pdf_to_markdown(tmp_path / "missing.pdf")


def test_blank_page_renders_empty(empty_pdf: Path) -> None:
    result = PdfToMarkdownConverter().convert(empty_pdf)

    assert result.markdown == ""
    assert result.item_count == 0
    assert result.page_count == 1


def test_extract_items_and_lines(sample_pdf: Path) -> None:
    items = extract_text_items(sample_pdf)
    assert [item.text for item in items][:2] == ["Introduction", "This is the first line of text"]
    heading = items[0]
    assert heading.bold
    assert heading.base_font == "Helvetica-Bold"
    assert heading.font_size == 24
    assert (heading.x, heading.y) == (72, 700)
    assert heading.width == pytest.approx(12 * 0.5 * 24)

    lines = extract_text_lines(sample_pdf)
    assert [line.text() for line in lines][-1] == "- Second point"
    assert len(lines) == 5


def test_two_column_reading_order(pdf_factory: Callable[..., Path], text_content: Callable[..., str]) -> None:
    rows = []
    for row in range(20):
        y = 700 - 14 * row
        rows.append((50, y, f"Left {row + 1}"))
        rows.append((320, y, f"Right {row + 1}"))
    path = pdf_factory("columns.pdf", text_content(*rows))

    markdown = convert_pdf_to_markdown(path)

    assert markdown.index("Left 20") < markdown.index("Right 1")
    assert markdown.index("Left 1 ") < markdown.index("Left 2 ")


def test_links_and_code_through_pipeline(pdf_factory: Callable[..., Path], text_content: Callable[..., str]) -> None:
    content = "\n".join(
        [
            text_content((72, 700, "Visit the site.")),
            text_content((72, 660, "print(1)"), font="/F3"),
        ]
    )
    path = pdf_factory("links.pdf", content, links={0: [((70, 695, 170, 712), "https://example.com")]})

    assert convert_pdf_to_markdown(path) == "[Visit the site.](https://example.com)\n\n```\nprint(1)\n```\n"


def test_pipeline_logger_guards_step_count() -> None:
    logger = PipelineLogger(steps=("one",))
    logger.advance("done")

    assert logger.records == ["one done"]
    assert logger.remaining() == 0
    with pytest.raises(RuntimeError):
        logger.advance()
