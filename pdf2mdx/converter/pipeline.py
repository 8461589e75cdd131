"""Conversion pipeline orchestrating PDF → Markdown stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import time
from typing import Sequence

from pypdf.errors import PdfReadError

from ..core.parser import PDFParser, PdfSource
from ..core.utils import get_logger, time_block
from ..core.validator import ensure_markdown_output
from .cmap import CMapRegistry
from .headings import body_font_size
from .interpreter import interpret_page
from .lines import group_into_lines
from .markdown import RenderedDocument, layout_page, render_document
from .types import ConversionOptions, ConversionResult, MarkdownOptions, Table, TextItem, TextLine

__all__ = [
    "PIPELINE_STEPS",
    "PdfToMarkdownConverter",
    "PdfToMarkdownPipeline",
    "PipelineLogger",
    "PipelineState",
    "convert_pdf_to_markdown",
    "extract_text_items",
    "extract_text_lines",
]

LOGGER = get_logger("pdf2mdx.converter.pipeline")

PIPELINE_STEPS: Sequence[str] = (
    "Open the PDF source and select pages.",
    "Interpret page content streams into positioned items.",
    "Estimate the body font size.",
    "Extract tables and group the remaining items into reading-order lines.",
    "Classify blocks and emit Markdown.",
    "Write the Markdown output.",
)

_PAGE_ERRORS = (PdfReadError, ValueError, KeyError, TypeError, AttributeError)


@dataclass(slots=True)
class PipelineLogger:
    """Tracks progress through the conversion pipeline."""

    steps: Sequence[str] = PIPELINE_STEPS
    _index: int = 0
    records: list[str] = field(default_factory=list)

    def advance(self, detail: str | None = None) -> None:
        if self._index >= len(self.steps):
            raise RuntimeError("Conversion pipeline logged more steps than expected")
        step = self.steps[self._index]
        self._index += 1
        message = f"{step} {detail}" if detail else step
        self.records.append(message)
        LOGGER.debug(message)

    def remaining(self) -> int:
        return len(self.steps) - self._index


@dataclass(slots=True)
class PipelineState:
    """Holds intermediate data during conversion."""

    source: PdfSource
    options: ConversionOptions
    logger: PipelineLogger
    parser: PDFParser | None = None
    registry: CMapRegistry | None = None
    page_numbers: list[int] = field(default_factory=list)
    page_widths: dict[int, float] = field(default_factory=dict)
    items: list[TextItem] = field(default_factory=list)
    body_size: float = 12.0
    lines: list[TextLine] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    document: RenderedDocument | None = None
    skipped_pages: list[int] = field(default_factory=list)


class PdfToMarkdownPipeline:
    """Runs the end-to-end PDF → Markdown conversion."""

    def __init__(self, options: ConversionOptions) -> None:
        self.options = options

    def run(self, source: PdfSource, *, layout: bool = True) -> PipelineState:
        state = PipelineState(source=source, options=self.options, logger=PipelineLogger())
        self._open(state)
        self._interpret(state)
        if layout:
            self._estimate_body_size(state)
            self._layout(state)
            self._render(state)
        return state

    # ------------------------------------------------------------------
    # Stage helpers
    # ------------------------------------------------------------------
    def _open(self, state: PipelineState) -> None:
        parser = PDFParser(state.source)
        reader = parser.load()
        state.parser = parser
        state.registry = CMapRegistry(parser.raw_bytes)
        state.page_numbers = parser.resolve_indices(self.options.page_numbers)
        name = parser.path.name if parser.path is not None else "in-memory PDF"
        state.logger.advance(
            f"Opened '{name}' with {len(reader.pages)} pages; selected {len(state.page_numbers)} for conversion."
        )

    def _interpret(self, state: PipelineState) -> None:
        assert state.parser is not None and state.registry is not None
        parser = state.parser
        for number, page in parser.iter_pages(indices=state.page_numbers):
            width = parser.page_width(page)
            if width is not None:
                state.page_widths[number] = width
            try:
                page_items = interpret_page(
                    page,
                    page_number=number,
                    registry=state.registry,
                    reader=parser.reader,
                    contents=parser.content_stream(page),
                )
            except _PAGE_ERRORS as exc:
                LOGGER.warning("Skipping page %d: %s", number, exc)
                state.skipped_pages.append(number)
                continue
            state.items.extend(page_items)
        text_count = sum(1 for item in state.items if item.is_text)
        detail = f"Collected {text_count} text items and {len(state.items) - text_count} image/link items."
        if state.skipped_pages:
            detail += f" Skipped pages: {', '.join(str(page) for page in state.skipped_pages)}."
        state.logger.advance(detail)

    def _estimate_body_size(self, state: PipelineState) -> None:
        markdown = self.options.markdown
        if markdown.base_font_size:
            state.body_size = markdown.base_font_size
            source = "configured"
        else:
            state.body_size = body_font_size(state.items)
            source = "most common"
        state.logger.advance(f"Body size {state.body_size:.1f}pt ({source}).")

    def _layout(self, state: PipelineState) -> None:
        markdown = self.options.markdown
        text_items = [item for item in state.items if item.is_text and item.text.strip()]
        for page in sorted({item.page for item in text_items}):
            lines, tables = layout_page(
                [item for item in text_items if item.page == page],
                state.body_size,
                page_width=state.page_widths.get(page),
                remove_page_numbers=markdown.remove_page_numbers,
            )
            state.lines.extend(lines)
            state.tables.extend(tables)
        state.logger.advance(f"Built {len(state.lines)} lines and {len(state.tables)} tables.")

    def _render(self, state: PipelineState) -> None:
        extras = [item for item in state.items if not item.is_text]
        state.document = render_document(
            state.lines,
            self.options.markdown,
            tables=state.tables,
            extras=extras,
            body_size=state.body_size,
        )
        state.logger.advance(
            f"Emitted {state.document.heading_count} headings in {len(state.document.markdown)} characters."
        )


def _conversion_options(
    options: MarkdownOptions | ConversionOptions | None,
    pages: Sequence[int] | None,
) -> ConversionOptions:
    if isinstance(options, ConversionOptions):
        if pages is None:
            return options
        return ConversionOptions(page_numbers=list(pages), markdown=options.markdown)
    return ConversionOptions(
        page_numbers=list(pages) if pages is not None else None,
        markdown=options or MarkdownOptions(),
    )


class PdfToMarkdownConverter:
    """High level PDF → Markdown conversion helper."""

    def __init__(self, options: ConversionOptions | MarkdownOptions | None = None) -> None:
        self.options = _conversion_options(options, None)

    def convert(self, source: PdfSource, output_path: str | Path | None = None) -> ConversionResult:
        started = time.perf_counter()
        pipeline = PdfToMarkdownPipeline(self.options)
        with time_block(LOGGER, "PDF to Markdown conversion"):
            state = pipeline.run(source)
        document = state.document
        assert document is not None
        destination: Path | None = None
        if output_path is not None:
            destination = ensure_markdown_output(output_path)
            destination.write_text(document.markdown, encoding="utf-8")
            state.logger.advance(f"Wrote {destination.name}.")
        else:
            state.logger.advance("Returned in memory.")
        return ConversionResult(
            markdown=document.markdown,
            output_path=destination,
            page_count=len(state.page_numbers),
            item_count=sum(1 for item in state.items if item.is_text),
            line_count=len(state.lines),
            table_count=len(state.tables),
            heading_count=document.heading_count,
            log=tuple(state.logger.records),
            processing_time=time.perf_counter() - started,
        )


def convert_pdf_to_markdown(
    source: PdfSource,
    *,
    options: MarkdownOptions | ConversionOptions | None = None,
    pages: Sequence[int] | None = None,
) -> str:
    """Convenience wrapper returning the Markdown text for ``source``."""

    converter = PdfToMarkdownConverter(_conversion_options(options, pages))
    return converter.convert(source).markdown


def extract_text_items(source: PdfSource, *, pages: Sequence[int] | None = None) -> list[TextItem]:
    """Return positioned text, image and link items in stream order per page."""

    state = PdfToMarkdownPipeline(_conversion_options(None, pages)).run(source, layout=False)
    return state.items


def extract_text_lines(
    source: PdfSource,
    *,
    options: MarkdownOptions | None = None,
    pages: Sequence[int] | None = None,
) -> list[TextLine]:
    """Return reading-order lines without table extraction or Markdown rendering."""

    options = options or MarkdownOptions()
    state = PdfToMarkdownPipeline(_conversion_options(options, pages)).run(source, layout=False)
    return group_into_lines(
        state.items,
        page_width=state.page_widths,
        remove_page_numbers=options.remove_page_numbers,
    )
